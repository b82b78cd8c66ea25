from fastapi import Depends
from app.infra.db import get_db
from app.infra.storage_s3 import get_storage

DBSession = Depends(get_db)
Storage = Depends(get_storage)
