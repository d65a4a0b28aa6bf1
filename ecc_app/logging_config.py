import logging


def configure_logging(level: str = 'INFO') -> None:
    """Idempotent logging setup for app-factory flow."""
    numeric_level = getattr(logging, str(level or 'INFO').upper(), logging.INFO)
    logging.getLogger('ecc_app').setLevel(numeric_level)
    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s %(levelname)s %(name)s %(message)s',
    )
