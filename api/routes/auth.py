"""
api/routes/auth.py -- Signup and login REST endpoints.

Routes:
  POST    /signup   -- register an account; 201 {"id": ...}
  OPTIONS /signup   -- static form schema (email, password, password2)
  POST    /login    -- check credentials; 200 with the user record
  OPTIONS /login    -- static form schema (email, password)

Errors:
  The service raises AuthError carrying a field-keyed error map; the handler
  in api/main.py renders it as JSON with the error's status code. Route
  handlers never build error bodies themselves.

Preflight:
  Browsers send CORS preflight as OPTIONS with "Accept: */*". Those requests
  get an empty 200 so only the CORS headers (added by the middleware in
  api/main.py) reach the browser. Any other OPTIONS request gets the schema.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from api.models import LOGIN_SCHEMA, SIGNUP_SCHEMA, Credentials, SignupRequest, SignupResponse, UserResponse
from auth.service import AuthService

# Auth policy: every route here is public -- these are the endpoints that
# establish identity in the first place.
router = APIRouter()


def _service(request: Request) -> AuthService:
    return AuthService(request.app.state.user_store)


def _schema_response(request: Request, schema: dict[str, dict[str, str]]) -> Response:
    if request.headers.get("accept") == "*/*":
        return Response(status_code=200)
    return JSONResponse(status_code=200, content=schema)


# ---------------------------------------------------------------------------
# Signup
# ---------------------------------------------------------------------------


@router.post("/signup", response_model=SignupResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> SignupResponse:
    """Register a new account.

    Returns only the new id. Validation failures and a taken email come back
    as 400 with every problem listed per field.
    """
    user_id = _service(request).signup(body.email, body.password)
    return SignupResponse(id=user_id)


@router.options("/signup", include_in_schema=False)
async def signup_options(request: Request) -> Response:
    """Describe the signup form. Never touches storage."""
    return _schema_response(request, SIGNUP_SCHEMA)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=UserResponse)
def login(request: Request, body: Credentials) -> UserResponse:
    """Check an email/password pair and return the matching account.

    Unknown email and wrong password produce the same __error__ message.
    """
    user = _service(request).login(body.email, body.password)
    return UserResponse.from_user(user)


@router.options("/login", include_in_schema=False)
async def login_options(request: Request) -> Response:
    """Describe the login form. Never touches storage."""
    return _schema_response(request, LOGIN_SCHEMA)
