# tests/test_formatting.py

import unittest
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from app.core.formatting import format_datetime, format_lead_time, resolve_timezone


class TestResolveTimezone(unittest.TestCase):

    def test_utc_aliases(self):
        for value in (None, "", "UTC", "gmt", "Z"):
            self.assertIs(resolve_timezone(value), timezone.utc)

    def test_numeric_offsets(self):
        self.assertEqual(resolve_timezone("-3"), timezone(timedelta(hours=-3)))
        self.assertEqual(resolve_timezone(-3), timezone(timedelta(hours=-3)))
        self.assertEqual(resolve_timezone("+05:30"), timezone(timedelta(hours=5, minutes=30)))
        self.assertEqual(resolve_timezone("UTC-3"), timezone(timedelta(hours=-3)))

    def test_iana_name(self):
        self.assertEqual(resolve_timezone("America/Sao_Paulo"), ZoneInfo("America/Sao_Paulo"))

    def test_unknown_name_falls_back_to_utc(self):
        with self.assertLogs("app.core.formatting", level="WARNING"):
            self.assertIs(resolve_timezone("Marte/Olympus"), timezone.utc)

    def test_zone_directory_falls_back_to_utc(self):
        with self.assertLogs("app.core.formatting", level="WARNING"):
            self.assertIs(resolve_timezone("America"), timezone.utc)

    def test_offset_out_of_range(self):
        with self.assertLogs("app.core.formatting", level="WARNING"):
            self.assertIs(resolve_timezone("+30"), timezone.utc)


class TestFormatting(unittest.TestCase):

    def test_format_datetime(self):
        instant = datetime(2024, 6, 5, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(format_datetime(instant, "UTC"), "05/06/2024 12:00")
        self.assertEqual(format_datetime(instant, "America/Sao_Paulo"), "05/06/2024 09:00")
        self.assertEqual(format_datetime(instant, "+2"), "05/06/2024 14:00")

    def test_lead_time(self):
        self.assertEqual(format_lead_time(0), "na hora do evento")
        self.assertEqual(format_lead_time(None), "na hora do evento")
        self.assertEqual(format_lead_time(1), "1 minuto antes")
        self.assertEqual(format_lead_time(45), "45 minutos antes")


if __name__ == "__main__":
    unittest.main()
