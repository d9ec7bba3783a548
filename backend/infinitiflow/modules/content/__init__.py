# Content module

from infinitiflow.modules.content.crud import OwnedResourceCRUD

__all__ = ["OwnedResourceCRUD"]
