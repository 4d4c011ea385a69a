from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from xml.sax.saxutils import quoteattr

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from trafik_monitor.config import Settings

logger = logging.getLogger(__name__)

ANNOUNCEMENT_FIELDS = (
    "AdvertisedTrainIdent",
    "OperationalTrainNumber",
    "ActivityType",
    "AdvertisedTimeAtLocation",
    "TimeAtLocation",
    "EstimatedTimeAtLocation",
    "LocationSignature",
    "Canceled",
    "Deviation",
    "FromLocation",
    "ToLocation",
    "ProductInformation",
    "OtherInformation",
)


class TrafikverketApiError(RuntimeError):
    pass


class TrafikverketClient:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "text/xml"})
        retry = Retry(
            total=3,
            connect=3,
            read=3,
            backoff_factor=0.5,
            status_forcelist=(429, 500, 502, 503, 504),
            # Trafikverket queries are read-only even though they are POSTed.
            allowed_methods=frozenset({"POST"}),
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def build_query(
        self,
        object_type: str,
        schema_version: str,
        filters: str,
        includes: tuple[str, ...] = (),
    ) -> str:
        include_elements = "".join(f"<INCLUDE>{name}</INCLUDE>" for name in includes)
        return (
            "<REQUEST>"
            f"<LOGIN authenticationkey={quoteattr(self.settings.api_key)}/>"
            f"<QUERY objecttype={quoteattr(object_type)} schemaversion={quoteattr(schema_version)}>"
            f"<FILTER>{filters}</FILTER>"
            f"{include_elements}"
            "</QUERY>"
            "</REQUEST>"
        )

    @staticmethod
    def _raise_with_context(response: Response, object_type: str) -> None:
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            body = (response.text or "").strip().replace("\n", " ")
            body = body[:500]
            raise TrafikverketApiError(
                f"{exc} | objecttype={object_type} | response_body={body}"
            ) from exc

    def query(self, object_type: str, xml: str) -> list[dict[str, Any]]:
        logger.debug("Querying %s from Trafikverket API", object_type)
        try:
            response = self.session.post(
                self.settings.api_endpoint,
                data=xml.encode("utf-8"),
                timeout=30,
            )
        except requests.RequestException as exc:
            raise TrafikverketApiError(f"Request for {object_type} failed: {exc}") from exc

        self._raise_with_context(response, object_type)

        try:
            payload = response.json()
        except ValueError as exc:
            raise TrafikverketApiError(f"Malformed {object_type} payload: {exc}") from exc

        body = payload.get("RESPONSE") if isinstance(payload, dict) else None
        results = body.get("RESULT") if isinstance(body, dict) else None
        if not isinstance(results, list):
            raise TrafikverketApiError(f"Malformed {object_type} payload: missing RESPONSE.RESULT")

        aggregated: list[dict[str, Any]] = []
        last_result: bool | None = None
        for result in results:
            if not isinstance(result, dict):
                raise TrafikverketApiError(f"Malformed {object_type} payload: RESULT entry is not an object")
            if "ERROR" in result:
                message = (result.get("ERROR") or {}).get("MESSAGE", "unknown error")
                raise TrafikverketApiError(f"Trafikverket rejected {object_type} query: {message}")
            items = result.get(object_type)
            if isinstance(items, list):
                aggregated.extend(items)
            info = result.get("INFO") or {}
            if "LASTRESULT" in info:
                value = info["LASTRESULT"]
                last_result = value.lower() == "true" if isinstance(value, str) else bool(value)

        if not aggregated:
            logger.warning("Empty %s payload received", object_type)
        if last_result is False:
            logger.warning(
                "Trafikverket indicated more %s data is available (LASTRESULT=false); narrow the window",
                object_type,
            )
        return aggregated

    def get_announcements(
        self,
        location_signatures: list[str],
        start: datetime,
        end: datetime,
    ) -> list[dict[str, Any]]:
        if not location_signatures:
            return []
        locations = "".join(
            f"<EQ name=\"LocationSignature\" value={quoteattr(sig)} />" for sig in location_signatures
        )
        if len(location_signatures) > 1:
            locations = f"<OR>{locations}</OR>"
        filters = (
            "<AND>"
            f"{locations}"
            f"<GTE name=\"AdvertisedTimeAtLocation\" value={quoteattr(start.isoformat())} />"
            f"<LTE name=\"AdvertisedTimeAtLocation\" value={quoteattr(end.isoformat())} />"
            "<EQ name=\"Advertised\" value=\"true\" />"
            "</AND>"
        )
        xml = self.build_query("TrainAnnouncement", "1.9", filters, ANNOUNCEMENT_FIELDS)
        return self.query("TrainAnnouncement", xml)

    def get_stations(self) -> list[dict[str, Any]]:
        xml = self.build_query("TrainStation", "1.4", "<EQ name=\"Advertised\" value=\"true\" />")
        return self.query("TrainStation", xml)

    def get_reason_codes(self) -> list[dict[str, Any]]:
        xml = self.build_query("ReasonCode", "1.0", "")
        return self.query("ReasonCode", xml)
