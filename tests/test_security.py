import pytest

from flowdeck.security.credentials import CredentialStore, SecurityService


@pytest.fixture
def service():
    return SecurityService("test-master-key", kdf_iterations=1_000)


def test_missing_key_is_rejected(monkeypatch):
    monkeypatch.delenv("FLOWDECK_ENCRYPTION_KEY", raising=False)
    with pytest.raises(ValueError, match="FLOWDECK_ENCRYPTION_KEY"):
        SecurityService()


def test_key_from_environment(monkeypatch):
    monkeypatch.setenv("FLOWDECK_ENCRYPTION_KEY", "env-key")
    assert SecurityService(kdf_iterations=1_000).encryption_key == "env-key"


def test_encrypt_decrypt(service):
    token = service.encrypt_data({"apiKey": "12345"})
    assert token.startswith("$enc$")
    assert "12345" not in token
    assert service.decrypt_data(token) == {"apiKey": "12345"}


def test_tokens_are_salted(service):
    assert service.encrypt_data("same") != service.encrypt_data("same")


@pytest.mark.parametrize("bad", ["plain", "$enc$only-three", "$enc$AAAA$not-a-token"])
def test_bad_tokens_raise_value_error(service, bad):
    with pytest.raises(ValueError):
        service.decrypt_data(bad)


def test_wrong_key_cannot_decrypt(service):
    token = service.encrypt_data({"a": 1})
    other = SecurityService("another-key", kdf_iterations=1_000)
    with pytest.raises(ValueError, match="Decryption failed"):
        other.decrypt_data(token)


def test_store_keeps_only_ciphertext(service):
    store = CredentialStore()
    svc = SecurityService("k", store=store, kdf_iterations=1_000)
    cred = {"id": "c1", "name": "Netlify", "type": "netlifyApi", "data": {"token": "secret"}, "nodesAccess": []}

    assert svc.store_credential(cred) == "c1"
    assert "c1" in store and len(store) == 1
    assert "secret" not in str(store.get("c1"))
    assert svc.get_credential("c1")["data"] == {"token": "secret"}
    assert svc.get_credential("missing") is None
    assert cred["data"] == {"token": "secret"}


def test_services_share_an_injected_store():
    store = CredentialStore()
    SecurityService("k", store=store, kdf_iterations=1_000).store_credential({"id": "c", "data": {"x": 1}})
    assert SecurityService("k", store=store, kdf_iterations=1_000).get_credential("c")["data"] == {"x": 1}


def test_sanitize_workflow_strips_secrets():
    wf = {
        "name": "w",
        "nodes": [
            {"id": "a", "credentials": {"api": {"id": "c1", "name": "Netlify", "data": {"token": "secret"}},
                                        "raw": "secret-string"}},
            {"id": "b"},
        ],
        "connections": {},
    }
    clean = SecurityService.sanitize_workflow(wf)
    assert clean["nodes"][0]["credentials"] == {"api": {"id": "c1", "name": "Netlify"}}
    assert clean["nodes"][1] == {"id": "b"}
    assert wf["nodes"][0]["credentials"]["raw"] == "secret-string"


def test_permissions(service):
    assert service.validate_permissions("u1", "w1", "execute") is True
    with pytest.raises(ValueError):
        service.validate_permissions("u1", "w1", "own")


def test_api_key_round_trip(service):
    key = service.generate_api_key("wf-7")
    assert service.validate_api_key(key) == {"valid": True, "workflowId": "wf-7"}


def test_expired_and_foreign_api_keys(service):
    expired = service.generate_api_key("wf-7", expires_in_seconds=-10)
    assert service.validate_api_key(expired) == {"valid": False}
    foreign = SecurityService("other", kdf_iterations=1_000).generate_api_key("wf-7")
    assert service.validate_api_key(foreign) == {"valid": False}
    assert service.validate_api_key("garbage") == {"valid": False}
