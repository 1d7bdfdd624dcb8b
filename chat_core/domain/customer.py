"""客户资料载荷解析。

浏览器端提交的载荷形如 ``{'CustomerName':'x', 'CustomerTaxId':'y'}``（单引号），
也可能是标准 JSON，或者用户手工输入的 ``Name: x, TaxId: y``。
这里只做结构化解析和非空校验，不做业务校验。
"""

import ast
import json
import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from chat_core.domain.exceptions import ValidationError


_FREE_TEXT_PATTERN = re.compile(
    r"(?:customer\s*)?name\s*[:=]\s*(?P<name>[^,;\n]+?)\s*[,;\n]\s*"
    r"(?:customer\s*)?tax\s*id\s*[:=]\s*(?P<tax>[^,;\s]+)",
    re.IGNORECASE,
)


class CustomerDetails(BaseModel):
    """账户创建所需的客户资料。"""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, frozen=True)

    customer_name: str = Field(alias="CustomerName", min_length=1)
    customer_tax_id: str = Field(alias="CustomerTaxId", min_length=1)

    @classmethod
    def parse(cls, payload: str) -> "CustomerDetails":
        """从客户端载荷解析客户资料，失败时抛出 ValidationError。"""

        data = _payload_to_mapping(payload or "")
        if data is None:
            raise ValidationError(
                code="INVALID_CUSTOMER_DETAILS",
                message="Customer details could not be read; expected CustomerName and CustomerTaxId.",
            )
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            missing = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
            raise ValidationError(
                code="INVALID_CUSTOMER_DETAILS",
                message=f"Customer details are incomplete: {', '.join(missing) or 'invalid payload'}.",
                fields=missing,
            ) from exc


def _payload_to_mapping(payload: str) -> Optional[Dict[str, Any]]:
    text = payload.strip()
    if not text:
        return None
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            try:
                data = ast.literal_eval(text)
            except (ValueError, SyntaxError, TypeError):
                return None
        return data if isinstance(data, dict) else None
    match = _FREE_TEXT_PATTERN.search(text)
    if match:
        return {"CustomerName": match.group("name"), "CustomerTaxId": match.group("tax")}
    return None
