from sqlalchemy.orm import Session
from models.log import Log

def write_log(db: Session, *, session_key=None, action, resource, status="SUCCESS", ip=None, meta=None):
    entry = Log(session_key=session_key, action=action, resource=resource, status=status, ip=ip, meta=meta or {})
    db.add(entry)
    db.commit()
