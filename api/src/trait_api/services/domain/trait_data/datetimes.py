#!/usr/bin/env python3
"""Date/time normalization for trait and defaults elements.

A node may carry ``utc_datetime`` or ``local_datetime`` (never both). The
value is converted to a naive UTC timestamp for storage together with the
precision codes:

    dateloc 5  exact date known
    timeloc 1  exact time known
    timeloc 9  time unspecified (date-only value)

Local values are interpreted in the time zone of the site already resolved
for the node.
"""

import logging
import re
from typing import Any
from xml.etree.ElementTree import Element

import pendulum
from sqlalchemy.orm import Session

from ....models.tables import Site
from .errors import BAD_DATE_TAG, InvalidDateSpecification

logger = logging.getLogger(__name__)

DATELOC_EXACT_DATE = 5
TIMELOC_EXACT_TIME = 1
UNSPECIFIED = 9

UTC_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}Z?$")
UTC_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$")
LOCAL_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
LOCAL_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?$")
FIXED_OFFSET = re.compile(r"^([+-])(\d{2}):?(\d{2})$")


def effective_time_zone(session: Session, site_id: int | None) -> str:
    """Time zone name of the site, or "UTC" when there is no site or it has none."""
    if site_id is None:
        return "UTC"
    site = session.get(Site, site_id)
    if site is None or not site.time_zone:
        return "UTC"
    return site.time_zone


def resolve_timezone(name: str):
    """Turn a stored time zone (IANA name or "+HH:MM" offset) into a pendulum timezone."""
    match = FIXED_OFFSET.match(name)
    if match:
        sign, hours, minutes = match.groups()
        offset = int(hours) * 3600 + int(minutes) * 60
        return pendulum.FixedTimezone(-offset if sign == "-" else offset)
    return pendulum.timezone(name)


class DateTimeNormalizer:

    def __init__(self, session: Session):
        self.session = session

    def normalize(self, element: Element, context, scope: Element = None) -> dict[str, Any]:
        """Compute the date columns specified on ``element``.

        Args:
            element: The element carrying the date attribute
            context: Context already holding this element's resolved site_id
            scope: Group owning a ``defaults`` element, used to detect site
                re-specification further down

        Returns:
            {"date", "dateloc", "timeloc"} or an empty dict if the element
            has no date attribute

        Raises:
            InvalidDateSpecification: Malformed or contradictory attributes
        """
        local_value = element.get("local_datetime")
        utc_value = element.get("utc_datetime")

        if local_value is not None:
            self._check_local_preconditions(element, context, scope)

        if utc_value is not None:
            if local_value is not None:
                raise InvalidDateSpecification(
                    element,
                    "You can't specify both utc_datetime and local_datetime as attributes of the same element."
                )
            timestamp, timeloc = self._parse_utc(element, utc_value)
        elif local_value is not None:
            tz_name = effective_time_zone(self.session, context.get("site_id"))
            timestamp, timeloc = self._parse_local(element, local_value, tz_name)
        else:
            return {}

        logger.debug(f"Normalized <{element.tag}> date to {timestamp.isoformat()} (timeloc={timeloc})")
        return {"date": timestamp, "dateloc": DATELOC_EXACT_DATE, "timeloc": timeloc}

    def _check_local_preconditions(self, element: Element, context, scope: Element | None) -> None:
        site_id = context.get("site_id")
        if site_id is None:
            raise InvalidDateSpecification(
                element,
                f"You can't have a local_datetime attribute on a {element.tag} element if no site has been specified.",
                BAD_DATE_TAG
            )

        site = self.session.get(Site, site_id)
        if site is None or not site.time_zone:
            raise InvalidDateSpecification(
                element,
                f"You can't have a local_datetime attribute on a {element.tag} element "
                "if the site doesn't specify a time zone.",
                BAD_DATE_TAG
            )

        if element.tag == "defaults" and scope is not None and _site_respecified(scope):
            raise InvalidDateSpecification(
                element,
                "You can't have a local_datetime attribute on a trait-group's defaults element "
                "if a trait or trait-group descendant sets (or re-sets) the site.",
                BAD_DATE_TAG
            )

    def _parse_utc(self, element: Element, value: str):
        if UTC_DATE_ONLY.match(value):
            date_string = value.rstrip("Z") + "T00:00:00Z"
            timeloc = UNSPECIFIED
        elif UTC_DATETIME.match(value):
            date_string = value
            timeloc = TIMELOC_EXACT_TIME
        else:
            raise InvalidDateSpecification(element, f"Date string {value} has an unexpected format.")

        parsed = _parse(element, date_string, "UTC")
        return parsed.in_timezone("UTC").naive(), timeloc

    def _parse_local(self, element: Element, value: str, tz_name: str):
        if LOCAL_DATE_ONLY.match(value):
            date_string = value + "T00:00:00"
            timeloc = UNSPECIFIED
        elif LOCAL_DATETIME.match(value):
            date_string = value
            timeloc = TIMELOC_EXACT_TIME
        else:
            raise InvalidDateSpecification(element, f"Date string {value} has an unexpected format.")

        try:
            tz = resolve_timezone(tz_name)
        except (ValueError, LookupError) as e:
            raise InvalidDateSpecification(
                element, f"Site time zone {tz_name!r} is not recognized: {e}", BAD_DATE_TAG
            ) from e

        parsed = _parse(element, date_string, tz)
        return parsed.in_timezone("UTC").naive(), timeloc


def _parse(element: Element, date_string: str, tz):
    # The patterns above accept impossible dates like 2020-02-30
    try:
        return pendulum.parse(date_string, tz=tz)
    except ValueError as e:
        raise InvalidDateSpecification(element, f"Date string {date_string} is not a valid date: {e}") from e


def _site_respecified(group: Element) -> bool:
    for child in group:
        if child.tag == "defaults":
            continue
        if child.tag == "site" or child.find(".//site") is not None:
            return True
    return False
