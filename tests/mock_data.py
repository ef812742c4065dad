from app.core.security import create_access_token

STUDENT_ID = "student-1"
OTHER_STUDENT_ID = "student-2"
ADMIN_ID = "admin-1"


def auth_headers(actor_id, is_admin=False):
    token = create_access_token(data={"sub": actor_id, "is_admin": is_admin})
    return {"Authorization": f"Bearer {token}"}


def token_for(actor_id, is_admin=False):
    return create_access_token(data={"sub": actor_id, "is_admin": is_admin})
