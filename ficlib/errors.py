# ficlib/errors.py


class FicLibError(Exception):
    """Base de los errores propios de ficlib."""
    pass


class ConfigurationError(FicLibError):
    """Falta api_key, modelo o config. Fatal: no se reintenta."""
    pass


class TransientServiceError(FicLibError):
    """
    Rate limit, sobrecarga o timeout del proveedor.
    Lo absorbe la política de reintentos; solo llega al Scheduler
    si se agotan los intentos.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PermanentServiceError(FicLibError):
    """Respuesta malformada, longitudes distintas o cualquier error no reintentable."""
    pass


class ProjectBusyError(FicLibError):
    """Ya hay una ejecución del Scheduler en curso para este proyecto."""
    pass


class ProjectNotFoundError(FicLibError):
    pass
