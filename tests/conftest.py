from decimal import Decimal

import pytest

from facturier.config import AppContext, load_config
from facturier.models.article import Article
from facturier.models.party import ClientInfo, CompanyInfo
from facturier.models.profile import UserProfile
from facturier.storage.images import DefaultImageSource
from facturier.storage.stores import JsonHistoryStore, JsonProfileStore

USER_ID = "user-1"


class FailingImageSource:
    def __init__(self):
        self.calls = []

    def load_image(self, ref):
        self.calls.append(ref)
        raise OSError("réseau indisponible")


class FailingProfileStore:
    def load_profile(self, user_id):
        return None

    def save_profile(self, profile):
        return False


@pytest.fixture
def company():
    return CompanyInfo(
        first_name="Claire",
        last_name="Durand",
        company_name="Atelier Durand",
        address="12 rue des Lilas",
        postal_code="69003",
        city="Lyon",
        phone="0612345678",
        email="contact@atelier-durand.fr",
        siret="123 456 789 00012",
        account_name="Claire Durand",
        bic="AGRIFRPP",
        iban="fr7612345678901234567890123",
        bank_name="Crédit Agricole",
    )


@pytest.fixture
def client():
    return ClientInfo(
        first_name="Marc",
        last_name="Petit",
        address="4 place Bellecour",
        postal_code="69002",
        city="Lyon",
        phone="0478000000",
        email="marc.petit@orange.fr",
    )


@pytest.fixture
def catalog():
    return [
        Article(name="Sonorisation", description=["Mariage", "Samedi soir"], quantity=2,
                unit="Heure", unit_price=Decimal("45.50")),
        Article(name="Livraison", quantity=1, unit="Forfait", unit_price=Decimal("30")),
    ]


@pytest.fixture
def profile(company, client, catalog):
    return UserProfile(user_id=USER_ID, company_info=company, client_info=client, articles=catalog)


@pytest.fixture
def config(tmp_path):
    return load_config(tmp_path / "data", exports_dir=tmp_path / "exports")


@pytest.fixture
def ctx(config):
    return AppContext(
        config=config,
        history=JsonHistoryStore(config.invoices_path),
        profiles=JsonProfileStore(config.profiles_path),
        images=DefaultImageSource(base_dir=config.data_dir),
        user_id=USER_ID,
    )
