"""Configuration for the orders engine.

The service takes an ``OrderModuleConfig``. Inside the Django project it is
built from the ``ORDERS`` setting by :meth:`OrderModuleConfig.from_settings`;
tests construct it directly.
"""

from dataclasses import dataclass, field

from django.conf import settings

from .hooks import OrderHooks


@dataclass(frozen=True)
class OrderFeatures:
    """Feature flags.

    Attributes:
        allow_edit: Accept free-form field edits (payment status, notes,
            metadata) through update. Status-only updates always pass.
        allow_cancel: Accept cancellations.
        track_events: Write ``order_created`` / ``status_changed`` /
            ``order_cancelled`` audit events.
    """

    allow_edit: bool = True
    allow_cancel: bool = True
    track_events: bool = True


@dataclass(frozen=True)
class AutoTransitions:
    confirm_on_payment: bool = False


@dataclass
class OrderModuleConfig:
    order_number_prefix: str = "ORD"
    order_number_length: int = 8
    order_number_attempts: int = 5
    features: OrderFeatures = field(default_factory=OrderFeatures)
    auto_transitions: AutoTransitions = field(default_factory=AutoTransitions)
    hooks: OrderHooks = field(default_factory=OrderHooks)
    hooks_best_effort: bool = False

    @classmethod
    def from_settings(cls) -> "OrderModuleConfig":
        """Build the configuration from ``settings.ORDERS``.

        Missing keys fall back to the dataclass defaults. ``HOOKS`` maps hook
        slot names to dotted import paths.
        """
        conf = getattr(settings, "ORDERS", {}) or {}
        return cls(
            order_number_prefix=conf.get("ORDER_NUMBER_PREFIX", "ORD"),
            order_number_length=int(conf.get("ORDER_NUMBER_LENGTH", 8)),
            order_number_attempts=int(conf.get("ORDER_NUMBER_ATTEMPTS", 5)),
            features=OrderFeatures(
                allow_edit=bool(conf.get("ALLOW_EDIT", True)),
                allow_cancel=bool(conf.get("ALLOW_CANCEL", True)),
                track_events=bool(conf.get("TRACK_EVENTS", True)),
            ),
            auto_transitions=AutoTransitions(
                confirm_on_payment=bool(conf.get("CONFIRM_ON_PAYMENT", False)),
            ),
            hooks=OrderHooks.from_paths(conf.get("HOOKS", {})),
            hooks_best_effort=bool(conf.get("HOOKS_BEST_EFFORT", False)),
        )
