import sys

import uvicorn

from checkrelay.config import config
from checkrelay.web import app

if len(sys.argv) == 1 or sys.argv[1] != 'server':
    raise SystemExit(f'Usage: {sys.executable} -m checkrelay server')
uvicorn.run(app, host=config.host, port=config.port)
