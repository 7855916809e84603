from dependency_injector import containers, providers

from rewardsapi.config import settings
from rewardsapi.services.payment_service import StripePaymentGateway


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Object(settings)


class ServiceModule(containers.DeclarativeContainer):
    """Process-wide service dependencies.

    DB 세션에 묶인 서비스는 요청마다 deps.py에서 생성합니다.
    """

    config = providers.DependenciesContainer()

    payment_gateway = providers.Singleton(StripePaymentGateway, settings=config.config)


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=["rewardsapi.deps"],
    )

    config = providers.Container(ConfigModule)
    services = providers.Container(ServiceModule, config=config)
