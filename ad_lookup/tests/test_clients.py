import unittest
from unittest import mock

from ldap3 import MODIFY_REPLACE, SUBTREE

from ad_lookup.clients import Ldap3DomainClient
from ad_lookup.config import DomainSettings
from ad_lookup.errors import DirectoryClientError
from ad_lookup.models import AccountOperation, QueryOptions

USER_DN = "CN=Jane Doe,OU=Users,DC=lux,DC=example,DC=com"


def search_entry(dn=USER_DN, **raw_attributes):
    return {"type": "searchResEntry", "dn": dn, "raw_attributes": raw_attributes}


class Ldap3DomainClientTests(unittest.TestCase):
    def setUp(self):
        self.settings = DomainSettings(
            domain="lux",
            url="ldaps://dc1.lux.example.com",
            base_dn="DC=lux,DC=example,DC=com",
            username="svc-lookup",
            password="secret",
        )
        server_patch = mock.patch("ad_lookup.clients.Server")
        connection_patch = mock.patch("ad_lookup.clients.Connection")
        self.server_cls = server_patch.start()
        self.connection_cls = connection_patch.start()
        self.addCleanup(server_patch.stop)
        self.addCleanup(connection_patch.stop)

        self.conn = self.connection_cls.return_value
        self.conn.result = {"result": 0, "description": "success"}
        self.conn.response = []
        self.client = Ldap3DomainClient(self.settings, connect_timeout=5)

    def test_query_decodes_records(self):
        self.conn.response = [
            search_entry(
                samaccountname=[b"jdoe"],
                displayName=[b"Jane Doe"],
                mail=[b"jane@lux.example.com"],
            ),
            {"type": "searchResRef", "uri": ["ldap://other/"]},
        ]
        options = QueryOptions(size_limit=10, time_limit=3)

        records = self.client.query("(&(objectClass=user)(sAMAccountName=JDOE))", options)

        self.assertEqual(len(records), 1)
        record = records[0]
        self.assertEqual(record["sAMAccountName"], ["jdoe"])
        self.assertEqual(record["displayName"], ["Jane Doe"])
        self.assertEqual(record["distinguishedName"], [USER_DN])

        kwargs = self.conn.search.call_args.kwargs
        self.assertEqual(kwargs["search_base"], "DC=lux,DC=example,DC=com")
        self.assertEqual(kwargs["search_scope"], SUBTREE)
        self.assertEqual(kwargs["size_limit"], 10)
        self.assertEqual(kwargs["time_limit"], 3)
        self.conn.unbind.assert_called_once()

    def test_connection_uses_service_account(self):
        self.client.query("(objectClass=user)", QueryOptions())
        kwargs = self.connection_cls.call_args.kwargs
        self.assertEqual(kwargs["user"], "svc-lookup")
        self.assertEqual(kwargs["password"], "secret")
        self.assertTrue(kwargs["auto_bind"])
        self.server_cls.assert_called_once()
        self.assertIsNotNone(self.server_cls.call_args.kwargs["tls"])

    def test_server_is_reused(self):
        self.client.query("(objectClass=user)", QueryOptions())
        self.client.query("(objectClass=user)", QueryOptions())
        self.server_cls.assert_called_once()

    def test_size_limit_exceeded_is_not_an_error(self):
        self.conn.result = {"result": 4, "description": "sizeLimitExceeded"}
        self.conn.response = [search_entry(sAMAccountName=[b"jdoe"])]
        records = self.client.query("(objectClass=user)", QueryOptions())
        self.assertEqual(len(records), 1)

    def test_directory_error_raises_with_message(self):
        self.conn.result = {"result": 50, "description": "insufficientAccessRights", "message": "access denied"}
        with self.assertRaises(DirectoryClientError) as ctx:
            self.client.query("(objectClass=user)", QueryOptions())
        self.assertEqual(ctx.exception.result_code, 50)
        self.assertEqual(ctx.exception.message, "access denied")
        self.conn.unbind.assert_called_once()

    def test_unlock(self):
        self.conn.response = [search_entry()]
        self.conn.extend.microsoft.unlock_account.return_value = True

        self.assertTrue(self.client.mutate("jdoe", AccountOperation.UNLOCK, {"lockoutTime": "0"}))
        self.conn.extend.microsoft.unlock_account.assert_called_once_with(user=USER_DN)

    def test_reset_password(self):
        self.conn.response = [search_entry()]
        self.conn.extend.microsoft.modify_password.return_value = True

        self.client.mutate("jdoe", AccountOperation.RESET_PASSWORD, {"password": "N3w!pass"})
        self.conn.extend.microsoft.modify_password.assert_called_once_with(
            user=USER_DN, new_password="N3w!pass"
        )

    def test_set_expiration_replaces_attribute(self):
        self.conn.response = [search_entry()]
        self.conn.modify.return_value = True

        self.client.mutate("jdoe", AccountOperation.SET_EXPIRATION, {"accountExpires": "133485408000000000"})
        self.conn.modify.assert_called_once_with(
            USER_DN, {"accountExpires": [(MODIFY_REPLACE, ["133485408000000000"])]}
        )

    def test_lookup_filter_is_escaped(self):
        self.conn.response = [search_entry()]
        self.conn.extend.microsoft.unlock_account.return_value = True

        self.client.mutate("j*doe", AccountOperation.UNLOCK, {})
        search_filter = self.conn.search.call_args.kwargs["search_filter"]
        self.assertEqual(search_filter, "(&(objectClass=user)(sAMAccountName=j\\2adoe))")

    def test_mutate_unknown_account(self):
        self.conn.response = []
        with self.assertRaises(DirectoryClientError):
            self.client.mutate("ghost", AccountOperation.UNLOCK, {})
        self.conn.unbind.assert_called_once()

    def test_rejected_mutation_raises(self):
        self.conn.response = [search_entry()]
        self.conn.extend.microsoft.unlock_account.return_value = False
        self.conn.result = {"result": 50, "description": "insufficientAccessRights"}

        with self.assertRaises(DirectoryClientError) as ctx:
            self.client.mutate("jdoe", AccountOperation.UNLOCK, {})
        self.assertEqual(ctx.exception.result_code, 50)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
