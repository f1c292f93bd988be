"""Unit tests for token_exchange/credentials/store.py - In-memory credential store."""

import pytest
from pydantic import SecretStr

from token_exchange.credentials.matching import requirements_from_uri
from token_exchange.credentials.store import AUTOGENERATED_DOMAIN_DESCRIPTION, InMemoryCredentialStore
from token_exchange.exceptions import PermissionDeniedError, StorageError
from token_exchange.models.domain import (
    GLOBAL_DOMAIN,
    Domain,
    HostnameSpecification,
    SchemeSpecification,
    StringCredential,
    UsernamePasswordCredential,
)
from token_exchange.security import SYSTEM, Authentication


def _token(credential_id, owner=None):
    return StringCredential(id=credential_id, description="token", secret=SecretStr("glpat"), owner=owner)


class BrokenStore(InMemoryCredentialStore):
    """Store that cannot persist anything."""

    def _save(self):
        raise StorageError("read-only file system")


class TestGetOrCreateDomain:
    """Tests for get_or_create_domain."""

    def test_creates_domain_named_after_host(self):
        """Should create an autogenerated domain for a new host."""
        store = InMemoryCredentialStore()

        domain = store.get_or_create_domain("https://gitlab.example.com/group", authentication=SYSTEM)

        assert domain.name == "gitlab.example.com"
        assert domain.description == AUTOGENERATED_DOMAIN_DESCRIPTION
        assert domain.specifications == (
            SchemeSpecification(schemes=("https",)),
            HostnameSpecification(includes="gitlab.example.com"),
        )
        assert domain in store.domains()

    def test_reuses_matching_domain(self):
        """Should return the existing domain for the same scheme and host."""
        store = InMemoryCredentialStore()

        first = store.get_or_create_domain("https://gitlab.example.com", authentication=SYSTEM)
        second = store.get_or_create_domain("https://GITLAB.example.com/other", authentication=SYSTEM)

        assert first == second
        assert len(store.domains()) == 2

    def test_scheme_conflict_creates_qualified_domain(self):
        """Should name the domain scheme://host when the host name is taken by another scheme."""
        store = InMemoryCredentialStore()
        https_domain = store.get_or_create_domain("https://gitlab.example.com", authentication=SYSTEM)

        http_domain = store.get_or_create_domain("http://gitlab.example.com", authentication=SYSTEM)

        assert http_domain != https_domain
        assert http_domain.name == "http://gitlab.example.com"
        assert http_domain.specifications[0] == SchemeSpecification(schemes=("http",))

    def test_reuses_handmade_domain(self):
        """Should reuse a domain created by an administrator when it accepts the server."""
        existing = Domain(name="gitlab.example.com", description="Managed by hand")
        store = InMemoryCredentialStore({existing: []})

        domain = store.get_or_create_domain("https://gitlab.example.com", authentication=SYSTEM)

        assert domain.description == "Managed by hand"

    def test_requires_manage_domains(self):
        """Should refuse principals without the manage domains permission."""
        store = InMemoryCredentialStore()

        with pytest.raises(PermissionDeniedError):
            store.get_or_create_domain("https://gitlab.example.com", authentication=Authentication.user("alice"))

    def test_failed_save_rolls_back(self):
        """Should not keep a domain whose save failed."""
        store = BrokenStore()

        with pytest.raises(StorageError):
            store.get_or_create_domain("https://gitlab.example.com", authentication=SYSTEM)

        assert store.domains() == [GLOBAL_DOMAIN]


class TestAddCredentials:
    """Tests for add_credentials and remove_credentials."""

    def test_add_and_read_back(self):
        """Should store a credential in the domain."""
        store = InMemoryCredentialStore()

        assert store.add_credentials(GLOBAL_DOMAIN, _token("t1"), authentication=SYSTEM) is True
        assert [c.id for c in store.credentials()] == ["t1"]

    def test_duplicate_id_rejected(self):
        """Should refuse a second credential with the same id."""
        store = InMemoryCredentialStore()
        store.add_credentials(GLOBAL_DOMAIN, _token("t1"), authentication=SYSTEM)

        assert store.add_credentials(GLOBAL_DOMAIN, _token("t1"), authentication=SYSTEM) is False
        assert len(store.credentials()) == 1

    def test_unknown_domain(self):
        """Should raise for a domain the store does not hold."""
        store = InMemoryCredentialStore()

        with pytest.raises(StorageError) as exc_info:
            store.add_credentials(Domain(name="missing"), _token("t1"), authentication=SYSTEM)

        assert exc_info.value.domain == "missing"

    def test_non_admin_cannot_write_system_store(self):
        """Should refuse system credentials from read-only principals."""
        store = InMemoryCredentialStore()

        with pytest.raises(PermissionDeniedError):
            store.add_credentials(GLOBAL_DOMAIN, _token("t1"), authentication=Authentication.user("alice"))

    def test_principal_writes_personal_store(self):
        """Should let a principal store credentials it owns."""
        store = InMemoryCredentialStore()

        added = store.add_credentials(GLOBAL_DOMAIN, _token("t1", owner="alice"), authentication=Authentication.user("alice"))

        assert added is True

    def test_failed_save_rolls_back(self):
        """Should restore the previous state when saving fails."""
        store = BrokenStore()

        with pytest.raises(StorageError, match="read-only file system"):
            store.add_credentials(GLOBAL_DOMAIN, _token("t1"), authentication=SYSTEM)

        assert store.credentials() == []

    def test_remove(self):
        """Should remove a credential by id."""
        store = InMemoryCredentialStore({GLOBAL_DOMAIN: [_token("t1"), _token("t2")]})

        assert store.remove_credentials(GLOBAL_DOMAIN, "t1", authentication=SYSTEM) is True
        assert store.remove_credentials(GLOBAL_DOMAIN, "t1", authentication=SYSTEM) is False
        assert [c.id for c in store.credentials()] == ["t2"]

    def test_remove_global_domain_refused(self):
        """Should never remove the global domain."""
        store = InMemoryCredentialStore()

        with pytest.raises(ValueError):
            store.remove_domain(GLOBAL_DOMAIN, authentication=SYSTEM)

    def test_remove_domain(self):
        """Should remove a domain together with its credentials."""
        domain = Domain(name="gitlab.example.com")
        store = InMemoryCredentialStore({domain: [_token("t1")]})

        assert store.remove_domain(domain, authentication=SYSTEM) is True
        assert store.remove_domain(domain, authentication=SYSTEM) is False
        assert store.get_domain("gitlab.example.com") is None

    def test_remove_domain_requires_manage_domains(self):
        store = InMemoryCredentialStore({Domain(name="gitlab.example.com"): []})

        with pytest.raises(PermissionDeniedError):
            store.remove_domain(Domain(name="gitlab.example.com"), authentication=Authentication.user("alice"))


class TestLookupCredentials:
    """Tests for lookup_credentials visibility and matching."""

    @pytest.fixture
    def populated_store(self):
        login = UsernamePasswordCredential(id="login", username="ci", password=SecretStr("pw"))
        personal = UsernamePasswordCredential(id="alice-login", username="alice", password=SecretStr("pw"), owner="alice")
        other_host = Domain(
            name="gitlab.other.org",
            specifications=(HostnameSpecification(includes="gitlab.other.org"),),
        )
        other_login = UsernamePasswordCredential(id="other", username="ci", password=SecretStr("pw"))
        return InMemoryCredentialStore(
            {GLOBAL_DOMAIN: [login, personal, _token("token")], other_host: [other_login]}
        )

    def test_system_sees_unowned_credentials(self, populated_store):
        """Should return only system credentials to SYSTEM."""
        found = populated_store.lookup_credentials(
            UsernamePasswordCredential, SYSTEM, requirements_from_uri("https://gitlab.example.com")
        )

        assert [c.id for c in found] == ["login"]

    def test_principal_sees_own_credentials(self, populated_store):
        """Should return a principal's personal credentials only."""
        found = populated_store.lookup_credentials(
            UsernamePasswordCredential, Authentication.user("alice"), requirements_from_uri("https://gitlab.example.com")
        )

        assert [c.id for c in found] == ["alice-login"]

    def test_domain_filtering(self, populated_store):
        """Should include credentials of domains accepting the URL."""
        found = populated_store.lookup_credentials(
            UsernamePasswordCredential, SYSTEM, requirements_from_uri("https://gitlab.other.org")
        )

        assert {c.id for c in found} == {"login", "other"}

    def test_kind_filtering(self, populated_store):
        """Should only return credentials of the requested type."""
        found = populated_store.lookup_credentials(StringCredential, SYSTEM, [])

        assert [c.id for c in found] == ["token"]

    def test_principal_named_system_is_not_system(self, populated_store):
        """Should treat a principal called SYSTEM as an ordinary principal."""
        impostor = Authentication.administrator("SYSTEM")
        populated_store._domains[GLOBAL_DOMAIN].append(
            UsernamePasswordCredential(id="own-login", username="me", password=SecretStr("pw"), owner="SYSTEM")
        )

        found = populated_store.lookup_credentials(
            UsernamePasswordCredential, impostor, requirements_from_uri("https://gitlab.example.com")
        )

        assert [c.id for c in found] == ["own-login"]
