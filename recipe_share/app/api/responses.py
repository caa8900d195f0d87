import math
from typing import Any, Optional, Sequence

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette import status


def success_response(data: Any = None, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": True, "data": jsonable_encoder(data)})


def message_response(message: str, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": True, "message": message})


def error_response(error: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
                   details: Optional[list] = None) -> JSONResponse:
    content = {"success": False, "error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def paginated_response(rows: Sequence[Any], page: int, page_size: int, total: int) -> JSONResponse:
    return JSONResponse(
        content={
            "success": True,
            "data": jsonable_encoder(list(rows)),
            "pagination": {
                "page": page,
                "pageSize": page_size,
                "total": total,
                "totalPages": math.ceil(total / page_size) if page_size else 0,
            },
        }
    )
