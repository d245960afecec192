from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ctms_client import hal
from ctms_client.client import CtmsClient
from ctms_client.observability import log_operation

log = logging.getLogger("ctms_client.operations.datamodel")

DATAMODEL_PATH = "/apis/avid.ctms.datamodel.aggregator;version=0;realm=global"
AGGREGATED_MODEL_REL = "datamodel:aggregated-model"


async def get_root_data_model(client: CtmsClient) -> Dict[str, Any]:
    """Service root of the data model aggregator."""
    with log_operation(log, "datamodel", "", "get root data model"):
        return await client.get(
            f"{client.base_url}{DATAMODEL_PATH}", action="datamodel"
        )


async def get_complete_datamodel(
    client: CtmsClient, datamodel_root: Dict[str, Any], language: Optional[str] = None
) -> Dict[str, Any]:
    with log_operation(
        log, "datamodel", language, f"get complete data model with language: {language}"
    ):
        template = hal.require_link_href(
            datamodel_root, AGGREGATED_MODEL_REL, ref="datamodel"
        )
        params = {"lang": language} if language else None
        return await client.get(
            hal.strip_template(template), params=params, action="datamodel"
        )


__all__ = ["get_root_data_model", "get_complete_datamodel", "DATAMODEL_PATH"]
