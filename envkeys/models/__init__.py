from envkeys.models.change_block import BlockType, ChangeBlock  # noqa: F401
from envkeys.models.environment_setting import EnvironmentSetting  # noqa: F401
