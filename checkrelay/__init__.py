import logging

from checkrelay.config import config

logging.basicConfig(
    format='%(asctime)s [%(name)s] %(levelname)s: %(message)s',
    level=logging.INFO,
)
if config.debug:
    logging.getLogger('checkrelay.runner').setLevel(logging.DEBUG)
    logging.getLogger('checkrelay.utils').setLevel(logging.DEBUG)
