from modtranslator.protection.math_units import MathUnitDetector, UnitCategory, UnitDictionary


detector = MathUnitDetector()


def test_units_need_a_word_boundary():
    assert detector.has_units("Latency 16 ms")
    assert detector.has_units("Runs at 60 FPS")
    assert not detector.has_units("16 msec")
    assert detector.find_units("4 GB and 2.5 km/h") == [(0, 4, "4 GB"), (9, 17, "2.5 km/h")]


def test_percentages():
    spans = detector.find_percents("Speed 50% and {0}%")
    assert [text for _, _, text in spans] == ["50%", "{0}%"]


def test_scientific_notation():
    assert detector.has_scientific("1.5e10 joules")
    assert detector.has_scientific("3 × 10^8 m/s")
    assert not detector.has_scientific("version 10")


def test_ranges_and_expressions():
    assert detector.find_ranges("Hits 10~20.") == [(5, 10, "10~20")]
    assert detector.has_math_expr("3.14 × 2")
    assert detector.has_math_expr("average is (a+b)/2")
    assert not detector.has_math_expr("no numbers here")


def test_unit_dictionary():
    units = UnitDictionary()
    assert units.contains("ms")
    assert units.categories_of("m") == [UnitCategory.TIME, UnitCategory.DISTANCE]

    units.add_unit("parsec", UnitCategory.DISTANCE)
    assert units.contains("parsec")
    assert not UnitDictionary().contains("parsec")


def test_unit_pattern_follows_the_dictionary():
    assert not detector.has_units("Walk 5 km")

    units = UnitDictionary({UnitCategory.DISTANCE: {"km"}, UnitCategory.OTHER: {"%"}})
    custom = MathUnitDetector(units)
    assert custom.find_units("Walk 5 km, then 2 ms") == [(5, 9, "5 km")]
    assert not custom.has_units("50%")


def test_longer_units_win():
    assert detector.find_units("Heat to 90°C") == [(8, 12, "90°C")]
