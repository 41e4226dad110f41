import pytest

from triply.fare import PRICING_CONFIG, FareCalculator, FareRule, VehicleClass
from triply.geo.models import RouteSummary


def _route(meters: float, seconds: float) -> RouteSummary:
    return RouteSummary(total_distance_meters=meters, total_duration_seconds=seconds)


class TestFareCalculator:
    @pytest.fixture
    def calculator(self):
        return FareCalculator()

    def test_car_fare_keeps_raw_price(self, calculator):
        # 5 + 5.0 * 4 + 0.30 * 10
        assert calculator.estimate(VehicleClass.CAR, _route(4000, 600)) == pytest.approx(28.0)

    def test_scooter_minimum_enforced(self, calculator):
        # raw 2 + 1.5 * 0.5 + 0.15 * 1 = 2.9, floor 8
        assert calculator.estimate(VehicleClass.SCOOTER, _route(500, 60)) == pytest.approx(8.0)

    def test_motorcycle_fare(self, calculator):
        # 3 + 2.5 * 10 + 0.20 * 20
        assert calculator.estimate(VehicleClass.MOTORCYCLE, _route(10_000, 1200)) == pytest.approx(
            32.0
        )

    def test_no_route_quotes_minimum(self, calculator):
        for vehicle_class, rule in PRICING_CONFIG.items():
            assert calculator.estimate(vehicle_class, None) == rule.min_fare

    def test_zero_route_is_floored(self, calculator):
        assert calculator.estimate(VehicleClass.CAR, _route(0, 0)) == pytest.approx(15.0)

    @pytest.mark.critical
    @pytest.mark.parametrize("vehicle_class", list(VehicleClass))
    @pytest.mark.parametrize(
        "meters,seconds", [(0, 0), (120, 30), (2500, 420), (18_000, 2400), (95_000, 7200)]
    )
    def test_never_below_minimum(self, calculator, vehicle_class, meters, seconds):
        estimate = calculator.estimate(vehicle_class, _route(meters, seconds))
        assert estimate >= PRICING_CONFIG[vehicle_class].min_fare

    def test_deterministic(self, calculator):
        route = _route(7321.4, 911.7)
        assert calculator.estimate(VehicleClass.CAR, route) == calculator.estimate(
            VehicleClass.CAR, route
        )

    def test_accepts_plain_string_class(self, calculator):
        assert calculator.estimate("car", _route(4000, 600)) == pytest.approx(28.0)


class TestRounding:
    @pytest.fixture
    def calculator(self):
        return FareCalculator()

    def test_display_rounds_to_integer(self, calculator):
        # 5 + 5.0 * 4.25 + 0.30 * 11 = 29.55
        route = _route(4250, 660)
        assert calculator.display_estimate(VehicleClass.CAR, route) == 30
        assert isinstance(calculator.display_estimate(VehicleClass.CAR, route), int)

    def test_confirmed_price_keeps_two_decimals(self, calculator):
        # 5 + 5.0 * 4.1234 + 0.30 * 10 = 28.617
        route = _route(4123.4, 600)
        assert calculator.confirmed_price(VehicleClass.CAR, route) == 28.62

    def test_display_and_confirmed_differ(self, calculator):
        route = _route(4123.4, 600)
        assert calculator.display_estimate(VehicleClass.CAR, route) == 29
        assert calculator.confirmed_price(VehicleClass.CAR, route) == 28.62

    def test_display_rounds_half_up(self):
        calculator = FareCalculator(
            {VehicleClass.CAR: FareRule(name="car", icon="c", base_fare=12.5, per_km=0, per_min=0, min_fare=0)}
        )
        assert calculator.display_estimate(VehicleClass.CAR, _route(1, 1)) == 13

    def test_quote_all_covers_every_class(self, calculator):
        quotes = calculator.quote_all(None)
        assert quotes == {
            VehicleClass.CAR: 15,
            VehicleClass.MOTORCYCLE: 10,
            VehicleClass.SCOOTER: 8,
        }


class TestPricingTable:
    def test_rules_are_frozen(self):
        with pytest.raises(Exception):
            PRICING_CONFIG[VehicleClass.CAR].base_fare = 1

    def test_negative_rule_rejected(self):
        with pytest.raises(ValueError):
            FareRule(name="x", icon="x", base_fare=-1, per_km=0, per_min=0, min_fare=0)
