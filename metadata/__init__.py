from .info_json import InfoJsonError, find_info_json, parse_info_json, read_item_id
from .types import TrackInfo

__all__ = ["InfoJsonError", "TrackInfo", "find_info_json", "parse_info_json", "read_item_id"]
