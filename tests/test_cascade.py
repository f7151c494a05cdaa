from TT_Video_Crawler.src.cascade import run_cascade


def test_first_non_empty_wins_and_stops():
    calls = []

    def empty(x):
        calls.append('empty')
        return '   '

    def first(x):
        calls.append('first')
        return f'  {x}  '

    def never(x):
        calls.append('never')
        return 'nope'

    result = run_cascade([empty, first, never], 'value')
    assert result.value == 'value'
    assert result.strategy == 'first'
    assert calls == ['empty', 'first']


def test_raising_strategy_counts_as_empty():
    def broken(x):
        raise ValueError("selector went stale")

    def fallback(x):
        return 'ok'

    assert run_cascade([broken, fallback], None).value == 'ok'


def test_exhausted_cascade_returns_default():
    result = run_cascade([lambda: None, lambda: [], lambda: ''], default='Unknown')
    assert result.value == 'Unknown'
    assert not result.found


def test_zero_and_false_are_values():
    assert run_cascade([lambda: 0]).value == 0
    assert run_cascade([lambda: False, lambda: True]).value is False
