"""Service exception → HTTP status translation.

Learn: Services never import FastAPI. Each route wraps its service call in
`with service_errors():` and the domain exception becomes the matching
HTTPException on the way out.
"""

from contextlib import contextmanager

from fastapi import HTTPException

from issuetracker.services.errors import (
    AccountStatusError,
    AuthenticationError,
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
)


@contextmanager
def service_errors():
    try:
        yield
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except AccountStatusError as e:
        detail = {"message": str(e)}
        if e.reason:
            detail["reason"] = e.reason
        raise HTTPException(status_code=403, detail=detail)
