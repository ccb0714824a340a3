# Importing the model modules registers every table on Base.metadata.
from app.backbone.modules.users import models as _users_models  # noqa: F401
from app.backbone.modules.tenant import models as _tenant_models  # noqa: F401
from app.backbone.modules.rbac import models as _rbac_models  # noqa: F401
from app.backbone.modules.dict import models as _dict_models  # noqa: F401
