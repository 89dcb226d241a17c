import logging, sys

from voice_relay.settings import get_settings

logging.basicConfig(
    level=getattr(logging, get_settings().log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],  # stdout -> docker logs
)

logger = logging.getLogger("voice_relay")
