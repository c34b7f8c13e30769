from tests.mocks.fake_platform import FakePlatform
from tests.mocks.platform_api import PlatformAPI

__all__ = ["FakePlatform", "PlatformAPI"]
