import logging
from typing import Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS

from config import Config

# Set up logging
logging.basicConfig(
    level=Config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from models import HealthStatus, InstanceStatus, InvalidStatusError, VersionInfo
from probes.memory_stress import MemoryStressAgent, StressError, StressNotRunningError
from probes.request_echo import build_request_echo
from probes.stress_params import parse_stress_parameters
from probes.system_info import SystemInfoAgent
from probes.version_info import read_version_info

ECHO_METHODS = ['GET', 'HEAD', 'POST', 'PUT', 'DELETE', 'PATCH', 'OPTIONS', 'CONNECT', 'TRACE']


class WhoamiServer:
    """State shared by the request handlers of one whoami instance.

    Holds the version info, the health flag, the host fact providers and
    the memory stress agent. Providers are plain callables so tests can
    swap them out.
    """

    def __init__(self, version_info: VersionInfo, system_info: Optional[SystemInfoAgent] = None,
                 memory_stress: Optional[MemoryStressAgent] = None):
        if version_info is None:
            raise ValueError("version info is required")
        system_info = system_info or SystemInfoAgent()
        self.version_info = version_info
        self.instance_status = InstanceStatus()
        self.virtual_memory_provider = system_info.get_virtual_memory
        self.interfaces_provider = system_info.get_interfaces
        self.hostname_provider = system_info.get_hostname
        self.memory_stress = memory_stress or MemoryStressAgent()


api = Blueprint('api', __name__, url_prefix='/api')


def _server() -> WhoamiServer:
    return current_app.config['WHOAMI_SERVER']


def _error(message: str, code: int):
    return jsonify({'error': message}), code


def _request_values():
    """Merge query string, form body and JSON object body, later sources win"""
    values = request.args.to_dict()
    values.update(request.form.to_dict())
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        values.update(payload)
    return values


@api.after_request
def log_request(response):
    logger.info(f"{request.method} {request.full_path.rstrip('?')} {response.status_code}")
    return response


# =============================================================================
# VERSION & HEALTH API ROUTES
# =============================================================================

@api.route('/version')
def get_version():
    """Build version of this instance"""
    return jsonify(_server().version_info.to_dict())


@api.route('/health')
def get_health():
    """Health flag; 503 while down"""
    health = _server().instance_status.health
    code = 200 if health is HealthStatus.UP else 503
    return jsonify({'status': health.value}), code


@api.route('/health', methods=['PUT'])
def put_health():
    """Set the health flag to up or down"""
    try:
        status = HealthStatus.parse(_request_values().get('status'))
    except InvalidStatusError as e:
        return _error(str(e), 400)
    _server().instance_status.health = status
    logger.info(f"Health set to {status}")
    return jsonify({'status': status.value})


# =============================================================================
# HOST INFORMATION API ROUTES
# =============================================================================

@api.route('/memory')
def get_memory():
    """Virtual memory statistics of the host"""
    try:
        stat = _server().virtual_memory_provider()
    except Exception as e:
        logger.error(f"/api/memory error: {e}")
        return _error(str(e), 500)
    return jsonify(stat.to_dict())


@api.route('/interfaces')
def get_interfaces():
    """Network interfaces of the host"""
    try:
        interfaces = _server().interfaces_provider()
    except Exception as e:
        logger.error(f"/api/interfaces error: {e}")
        return _error(str(e), 500)
    return jsonify([interface.to_dict() for interface in interfaces])


@api.route('/hostname')
def get_hostname():
    try:
        info = _server().hostname_provider()
    except Exception as e:
        logger.error(f"/api/hostname error: {e}")
        return _error(str(e), 500)
    return jsonify(info.to_dict())


@api.route('/request', methods=ECHO_METHODS)
def echo_request():
    """Echo the incoming request back to the client"""
    return jsonify(build_request_echo(request))


# =============================================================================
# MEMORY STRESS API ROUTES
# =============================================================================

@api.route('/memory/stresssession')
def get_memory_stress():
    """Poll the running memory stress session"""
    try:
        snapshot = _server().memory_stress.poll()
    except StressNotRunningError as e:
        return _error(str(e), 400)
    return jsonify(snapshot.to_dict())


@api.route('/memory/stresssession', methods=['POST'])
def post_memory_stress():
    """Start a memory stress session"""
    try:
        params = parse_stress_parameters(_request_values())
        snapshot = _server().memory_stress.start(params)
    except (ValueError, StressError) as e:
        logger.warning(f"Memory stress not started: {e}")
        return _error(str(e), 400)
    return jsonify(snapshot.to_dict())


@api.route('/memory/stresssession', methods=['DELETE'])
def cancel_memory_stress():
    """Cancel the running memory stress session"""
    try:
        snapshot = _server().memory_stress.cancel()
    except StressNotRunningError as e:
        return _error(str(e), 400)
    return jsonify(snapshot.to_dict())


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(server: Optional[WhoamiServer] = None) -> Flask:
    if server is None:
        server = WhoamiServer(read_version_info())
    app = Flask(__name__)
    CORS(app, origins=Config.CORS_ORIGINS)
    app.config['WHOAMI_SERVER'] = server
    app.register_blueprint(api)
    return app


# =============================================================================
# APPLICATION STARTUP
# =============================================================================

def is_port_in_use(port, host='127.0.0.1'):
    """Check if a port is already in use"""
    import socket
    family = socket.AF_INET6 if ':' in host else socket.AF_INET
    with socket.socket(family, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            return False
        except OSError:
            return True


def find_available_port(start_port, max_port, host='127.0.0.1'):
    """Find an available port starting from start_port"""
    for port in range(start_port, max_port):
        if not is_port_in_use(port, host):
            return port
    return None


def main():
    Config.validate_config()
    host, port = Config.get_address()
    if is_port_in_use(port, host):
        logger.warning(f"Port {port} is already in use, finding alternative...")
        alt_port = find_available_port(port + 1, port + 1 + Config.PORT_SEARCH_RANGE, host)
        if alt_port is None:
            logger.error(f"No available ports found after {port}")
            raise SystemExit(1)
        port = alt_port
        logger.info(f"Using port {port} instead")

    app = create_app()
    server = app.config['WHOAMI_SERVER']
    logger.info(f"whoami listening on http://{host}:{port}/api")
    try:
        app.run(host=host, port=port, debug=Config.DEBUG, threaded=True, use_reloader=False)
    finally:
        server.memory_stress.shutdown(timeout=5)
        logger.info("Server stopped")


if __name__ == '__main__':
    main()
