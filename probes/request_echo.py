from typing import Any, Dict, List


def canonical_header_key(name: str) -> str:
    """'accept-encoding' -> 'Accept-Encoding'"""
    return '-'.join(part.capitalize() for part in name.split('-'))


def _split_protocol(protocol: str):
    try:
        version = protocol.split('/', 1)[1]
        major, minor = version.split('.', 1)
        return int(major), int(minor)
    except (IndexError, ValueError):
        return 1, 1


def build_request_echo(req) -> Dict[str, Any]:
    """Describe an incoming Flask request.

    The Host header is reported as 'host' and left out of 'headers'. 'form'
    merges query string and form body values and is omitted when empty.
    """
    environ = req.environ
    protocol = environ.get('SERVER_PROTOCOL', 'HTTP/1.1')
    proto_major, proto_minor = _split_protocol(protocol)

    headers: Dict[str, List[str]] = {}
    for name, value in req.headers.items():
        key = canonical_header_key(name)
        if key == 'Host':
            continue
        headers.setdefault(key, []).append(value)

    form: Dict[str, List[str]] = {}
    for source in (req.form, req.args):
        for key in source.keys():
            form.setdefault(key, []).extend(source.getlist(key))

    remote_address = req.remote_addr or ''
    remote_port = environ.get('REMOTE_PORT')
    if remote_port:
        remote_address = f"{remote_address}:{remote_port}"

    result = {
        'method': req.method,
        'path': req.path,
        'proto': protocol,
        'protoMajor': proto_major,
        'protoMinor': proto_minor,
        'headers': headers,
        'host': req.host,
        'remoteAddress': remote_address,
    }
    if form:
        result['form'] = form
    return result
