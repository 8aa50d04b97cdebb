from decimal import Decimal

from averaging import IqrTrim, ThresholdTrim, mean


def _d(*values: int) -> list[Decimal]:
    return [Decimal(v) for v in values]


def test_iqr_trim_drops_outlier_with_zero_width_fence() -> None:
    result = IqrTrim().apply(_d(100, 100, 100, 100, 1000))
    assert result.average == Decimal("100")
    assert result.excluded == (Decimal("1000"),)


def test_iqr_trim_uses_sorted_index_quartiles() -> None:
    # sorted: 10 20 30 40 50 60 70 400 -> Q1 = s[2] = 30, Q3 = s[6] = 70
    # fence [30 - 60, 70 + 60] = [-30, 130]
    result = IqrTrim().apply(_d(400, 10, 20, 30, 40, 50, 60, 70))
    assert Decimal("400") in result.excluded
    assert result.average == mean(_d(10, 20, 30, 40, 50, 60, 70))


def test_iqr_trim_leaves_two_values_alone() -> None:
    result = IqrTrim().apply(_d(10, 1000))
    assert result.excluded == ()
    assert result.average == Decimal("505")


def test_threshold_trim_single_pass_against_full_mean() -> None:
    result = ThresholdTrim().apply(_d(100, 100, 100, 100, 1000))
    assert result.mean == Decimal("280")
    assert result.excluded == (Decimal("1000"),)
    assert result.average == Decimal("100")


def test_threshold_trim_without_extremes_matches_mean() -> None:
    result = ThresholdTrim().apply(_d(90, 100, 110))
    assert result.excluded == ()
    assert result.average == result.mean == Decimal("100")


def test_threshold_trim_is_not_iterated() -> None:
    # mean 30.4 -> threshold 60.8 drops 100 only; a second pass would drop 40 too
    result = ThresholdTrim().apply(_d(1, 1, 10, 40, 100))
    assert result.excluded == (Decimal("100"),)
    assert result.average == Decimal("13")


def test_policies_disagree_on_moderate_outlier() -> None:
    # IQR fence is [6, 22] so 30 goes; 2x mean is 32.8 so 30 stays
    history = _d(10, 12, 14, 16, 30)
    assert IqrTrim().apply(history).average == Decimal("13")
    assert ThresholdTrim().apply(history).average == Decimal("16.4")


def test_empty_history_averages_to_zero() -> None:
    assert IqrTrim().apply([]).average == 0
    assert ThresholdTrim().apply([]).average == 0
