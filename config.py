import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    # Server Configuration
    ADDRESS = os.getenv('WHOAMI_ADDRESS', '127.0.0.1:3000')
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'  # Default to False for security
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')
    PORT_SEARCH_RANGE = int(os.getenv('PORT_SEARCH_RANGE', 10))

    # Version Configuration (injected at build time)
    VERSION_MAJOR = os.getenv('WHOAMI_VERSION_MAJOR', '0')
    VERSION_MINOR = os.getenv('WHOAMI_VERSION_MINOR', '0')
    VERSION_PATCH = os.getenv('WHOAMI_VERSION_PATCH', '0')
    VERSION_COMMIT = os.getenv('WHOAMI_VERSION_COMMIT', 'unknown')
    VERSION_BUILD_DATE = os.getenv('WHOAMI_VERSION_BUILD_DATE', '1970-01-01T00:00:00Z')

    # Logging Configuration
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    @classmethod
    def get_address(cls):
        """Split WHOAMI_ADDRESS into (host, port)"""
        host, sep, port = cls.ADDRESS.rpartition(':')
        if not sep or not port.isdigit():
            raise ValueError(f"invalid address '{cls.ADDRESS}', expected host:port")
        return host.strip('[]') or '0.0.0.0', int(port)

    @classmethod
    def validate_config(cls):
        """Validate configuration values"""
        host, port = cls.get_address()
        if not 0 < port < 65536:
            raise ValueError(f"port {port} is out of range")
        if cls.PORT_SEARCH_RANGE < 1:
            raise ValueError("PORT_SEARCH_RANGE must be positive")
        if cls.DEBUG:
            print("WARNING: Debug mode is enabled. This should be disabled in production.")
        return True
