class StructureBrowserError(Exception):
    """Base exception for all structure_browser errors"""
    pass

class ConfigError(StructureBrowserError):
    """Invalid or inconsistent browser config file or environment override"""
    pass

class TransportError(StructureBrowserError):
    """
    A request to the structures API failed: connection problems, non-2xx
    status codes, or a body that is not valid JSON
    """
    pass

class ResponseShapeError(StructureBrowserError):
    """
    The API answered with JSON that matches none of the known payload shapes
    (missing expected arrays, wrong types, etc)
    """
    pass
