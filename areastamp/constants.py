APP_NAME = "areastamp"
APP_VERSION = "0.3.3"

# 有符号 32 位像素坐标的上限
PIXEL_COORD_MAX = 2**31 - 1

DEFAULT_LOCATION = "your area"
DEFAULT_RENDER_PERMITS = 2
DEFAULT_JPEG_QUALITY = 75

CONFIG_ENV_VAR = "AREASTAMP_CONFIG"
DEFAULT_CONFIG_NAME = "config.yaml"

CONFIG_EXTENSIONS = {".yaml", ".yml", ".json"}
