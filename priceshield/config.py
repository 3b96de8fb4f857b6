import logging
import os
from pathlib import Path

VERSION = "v0.2.0"
APP_NAME = "PriceShield"

# 核心路径
ROOT_PATH = Path(__file__).parent.parent

APPDATA_PATH = Path(os.getenv("PRICESHIELD_APPDATA", str(ROOT_PATH / "AppData")))

LOG_PATH = APPDATA_PATH / "logs"
DB_PATH = APPDATA_PATH / "snapshots.db"

# 日志配置
LOG_LEVEL = logging.INFO
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# 抓取页面时的默认 UA
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/146.0.0.0 Safari/537.36"
)
