from datetime import date, datetime, timedelta, timezone

PRODID = "-//lms-service//chapter schedule//EN"


def _escape(text: str) -> str:
    return (text.replace("\\", "\\\\").replace(";", "\\;")
            .replace(",", "\\,").replace("\n", "\\n"))


def _stamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def generate_calendar_event(
    title: str,
    description: str,
    start_date: date,
    start_time: str,
    duration_minutes: int,
    meeting_url: str | None = None,
    uid: str | None = None,
    now: datetime | None = None,
) -> str:
    """iCalendar invite for one chapter session. Schedule times are taken as UTC."""
    hours, minutes = (int(part) for part in start_time.split(":")[:2])
    start = datetime(start_date.year, start_date.month, start_date.day, hours, minutes, tzinfo=timezone.utc)
    end = start + timedelta(minutes=duration_minutes)

    body = description
    if meeting_url:
        body += f"\n\nMeeting Link: {meeting_url}"

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "BEGIN:VEVENT",
        f"UID:{uid or _stamp(start)}@lms-service",
        f"DTSTAMP:{_stamp(now or datetime.now(timezone.utc))}",
        f"DTSTART:{_stamp(start)}",
        f"DTEND:{_stamp(end)}",
        f"SUMMARY:{_escape(title)}",
        f"DESCRIPTION:{_escape(body)}",
    ]
    if meeting_url:
        lines.append(f"URL:{meeting_url}")
    lines += ["END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(lines) + "\r\n"


def calendar_filename(title: str) -> str:
    return "_".join(title.split()) + ".ics"
