import unittest
from datetime import datetime, timezone

from ad_lookup.errors import MalformedTimestamp
from ad_lookup.mapper import AttributeMapper, attribute_text
from ad_lookup.tests.fakes import user_record

NEW_YEAR_2024_TICKS = "133485408000000000"
FEB_15_2024_TICKS = "133524288000000000"


class SecurityStateTests(unittest.TestCase):
    def setUp(self):
        self.mapper = AttributeMapper()

    def _state(self, uac, lockout=None):
        raw = user_record("jdoe", userAccountControl=str(uac))
        if lockout is not None:
            raw["lockoutTime"] = [lockout]
        return self.mapper.normalize(raw).security

    def test_disabled_flag(self):
        state = self._state(2)
        self.assertTrue(state.disabled)
        self.assertFalse(state.password_expired)
        self.assertFalse(state.locked)

    def test_password_expired_flag(self):
        state = self._state(8388608)
        self.assertFalse(state.disabled)
        self.assertTrue(state.password_expired)

    def test_both_flags(self):
        state = self._state(8388610)
        self.assertTrue(state.disabled)
        self.assertTrue(state.password_expired)

    def test_no_flags(self):
        state = self._state(0)
        self.assertFalse(state.disabled)
        self.assertFalse(state.password_expired)

    def test_locked_comes_from_lockout_time_only(self):
        self.assertTrue(self._state(0, lockout=NEW_YEAR_2024_TICKS).locked)
        self.assertFalse(self._state(0, lockout="0").locked)
        # LOCKOUT bit (0x10) in the bitmask does not count
        self.assertFalse(self._state(0x10).locked)

    def test_locked_and_disabled_are_independent(self):
        state = self._state(2, lockout=NEW_YEAR_2024_TICKS)
        self.assertTrue(state.locked)
        self.assertTrue(state.disabled)

    def test_negative_account_control_is_treated_as_unsigned(self):
        # 0x80000002 as a signed 32-bit value
        self.assertTrue(self._state(-2147483646).disabled)

    def test_non_numeric_account_control_defaults_to_zero(self):
        with self.assertLogs("ad_lookup.mapper", level="WARNING"):
            state = self._state("garbage")
        self.assertFalse(state.disabled)


class NormalizeTests(unittest.TestCase):
    def setUp(self):
        self.mapper = AttributeMapper()

    def test_missing_display_name_is_excluded(self):
        records = [user_record("ghost", display_name=None), user_record("jdoe")]
        self.assertIsNone(self.mapper.normalize(records[0]))
        users = self.mapper.normalize_all(records)
        self.assertEqual([u.account_id for u in users], ["jdoe"])

    def test_missing_strings_default_to_empty(self):
        user = self.mapper.normalize({"displayName": "Jane Doe"})
        self.assertEqual(user.display_name, "Jane Doe")
        self.assertEqual(user.department, "")
        self.assertEqual(user.email, "")
        self.assertEqual(user.account_id, "")
        self.assertEqual(user.principal_name, "")
        self.assertIsNone(user.dates.password_last_set)
        self.assertIsNone(user.dates.password_expiration)

    def test_accepts_bytes_and_multi_valued_attributes(self):
        user = self.mapper.normalize({
            "displayName": [b"Jane Doe"],
            "mail": [b"jane@example.com", b"alias@example.com"],
        })
        self.assertEqual(user.display_name, "Jane Doe")
        self.assertEqual(user.email, "jane@example.com")

    def test_identity_fields(self):
        raw = user_record(
            "jdoe",
            mail="jane@example.com",
            department="IT",
            userPrincipalName="jdoe@lux.example.com",
        )
        user = self.mapper.normalize(raw, domain="lux")
        self.assertEqual(user.account_id, "jdoe")
        self.assertEqual(user.full_name, "Jane Doe")
        self.assertEqual(user.email, "jane@example.com")
        self.assertEqual(user.department, "IT")
        self.assertEqual(user.principal_name, "jdoe@lux.example.com")
        self.assertEqual(user.distinguished_name, "CN=jdoe,OU=Users,DC=example,DC=com")
        self.assertEqual(user.domain, "lux")

    def test_password_expiration_defaults_to_90_days_after_last_set(self):
        user = self.mapper.normalize(user_record("jdoe", pwdLastSet=NEW_YEAR_2024_TICKS))
        self.assertEqual(user.dates.password_last_set, datetime(2024, 1, 1, tzinfo=timezone.utc))
        self.assertEqual(user.dates.password_expiration, datetime(2024, 3, 31, tzinfo=timezone.utc))

    def test_password_max_age_is_configurable(self):
        mapper = AttributeMapper(password_max_age_days=30)
        user = mapper.normalize(user_record("jdoe", pwdLastSet=NEW_YEAR_2024_TICKS))
        self.assertEqual(user.dates.password_expiration, datetime(2024, 1, 31, tzinfo=timezone.utc))

    def test_computed_expiry_takes_precedence(self):
        raw = user_record(
            "jdoe",
            pwdLastSet=NEW_YEAR_2024_TICKS,
            **{"msDS-UserPasswordExpiryTimeComputed": FEB_15_2024_TICKS},
        )
        user = self.mapper.normalize(raw)
        self.assertEqual(user.dates.password_expiration, datetime(2024, 2, 15, tzinfo=timezone.utc))

    def test_computed_expiry_never_means_no_expiration(self):
        raw = user_record(
            "jdoe",
            pwdLastSet=NEW_YEAR_2024_TICKS,
            **{"msDS-UserPasswordExpiryTimeComputed": "9223372036854775807"},
        )
        self.assertIsNone(self.mapper.normalize(raw).dates.password_expiration)

    def test_account_expiration_and_last_modified(self):
        raw = user_record(
            "jdoe",
            accountExpires=FEB_15_2024_TICKS,
            whenChanged="20240115103000.0Z",
        )
        dates = self.mapper.normalize(raw).dates
        self.assertEqual(dates.account_expiration, datetime(2024, 2, 15, tzinfo=timezone.utc))
        self.assertEqual(dates.last_modified, datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))

    def test_never_expiring_account(self):
        raw = user_record("jdoe", accountExpires="9223372036854775807")
        self.assertIsNone(self.mapper.normalize(raw).dates.account_expiration)

    def test_malformed_timestamp_is_not_swallowed(self):
        with self.assertRaises(MalformedTimestamp):
            self.mapper.normalize(user_record("jdoe", pwdLastSet="not-a-number"))

    def test_to_dict_is_fully_populated(self):
        raw = user_record("jdoe", userAccountControl="2", lockoutTime=NEW_YEAR_2024_TICKS)
        payload = self.mapper.normalize(raw, domain="essilor").to_dict()

        self.assertEqual(payload["accountId"], "jdoe")
        self.assertEqual(payload["department"], "")
        self.assertEqual(payload["domain"], "essilor")
        self.assertEqual(payload["status"], "Active")
        self.assertEqual(
            payload["securityState"],
            {"locked": True, "disabled": True, "passwordExpired": False},
        )
        self.assertEqual(
            payload["security"],
            {"Account Locked": "Yes", "Account Disabled": "Yes", "Password Expired": "No"},
        )
        self.assertEqual(
            payload["dates"],
            {
                "passwordLastSet": "N/A",
                "passwordExpiration": "N/A",
                "accountExpiration": "N/A",
                "lastModified": "N/A",
            },
        )


class AttributeTextTests(unittest.TestCase):
    def test_absent_and_empty_values(self):
        self.assertEqual(attribute_text({}, "mail"), "")
        self.assertEqual(attribute_text({"mail": []}, "mail"), "")
        self.assertEqual(attribute_text({"mail": None}, "mail"), "")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
