"""
Statement download: ask for the bill URL, then fetch the archive it points to.

The file content is returned to the caller; writing it anywhere is up to them.
"""
from __future__ import annotations

from datetime import datetime
from urllib.parse import urlsplit

from infrastructure.external.payments.alipay import constants as C
from infrastructure.external.payments.alipay.engine import AlipayEngine
from infrastructure.external.payments.alipay.models import Auxiliary, AuxiliaryKind, BillFile
from infrastructure.external.payments.exceptions import MalformedResponseError
from infrastructure.external.payments.gateway_data import GatewayData


FILENAME_TIME_FORMAT = "%Y%m%d%H%M%S"


class BillDownload:
    def __init__(self, engine: AlipayEngine) -> None:
        self.engine = engine

    async def query_download_url(self, auxiliary: Auxiliary) -> str:
        auxiliary.validate_for(AuxiliaryKind.BILL_DOWNLOAD)
        biz = Auxiliary(bill_type=auxiliary.bill_type, bill_date=auxiliary.bill_date)
        notify = await self.engine.commit(C.BILL_DOWNLOAD, biz.to_biz_content())
        if not notify.bill_download_url:
            raise MalformedResponseError("Response carries no bill_download_url", provider=self.engine.provider)
        return notify.bill_download_url

    async def build_bill_download(self, auxiliary: Auxiliary) -> BillFile:
        url = await self.query_download_url(auxiliary)
        query = GatewayData().from_form(urlsplit(url).query)
        file_type = query.get_string("fileType") or "csv.zip"
        content = await self.engine.transport.fetch(url)
        return BillFile(
            url=url,
            filename=f"{datetime.now().strftime(FILENAME_TIME_FORMAT)}.{file_type}",
            content=content,
        )
