import pytest

from sgi_gps import performance_logger


@pytest.fixture(autouse=True)
def clean_stats(monkeypatch):
    monkeypatch.setattr(performance_logger, 'ENABLE_PROFILING', True)
    performance_logger.reset_stats()
    yield
    performance_logger.reset_stats()


def test_profile_function_accumulates_calls():
    @performance_logger.profile_function(name='sumar')
    def sumar(a, b):
        return a + b

    assert sumar(1, 2) == 3
    assert sumar(2, 2) == 4

    stats = performance_logger.get_function_stats()['sumar']
    assert stats['calls'] == 2
    assert stats['max_time'] >= stats['avg_time'] >= 0


def test_profile_function_counts_failed_calls():
    @performance_logger.profile_function
    def fallar():
        raise ValueError('x')

    with pytest.raises(ValueError):
        fallar()

    assert performance_logger.get_function_stats()['fallar']['calls'] == 1
    assert fallar.__name__ == 'fallar'


def test_profile_function_is_noop_when_disabled(monkeypatch):
    monkeypatch.setattr(performance_logger, 'ENABLE_PROFILING', False)

    def original():
        return 'ok'

    assert performance_logger.profile_function(original) is original
    assert original() == 'ok'
    assert performance_logger.get_function_stats() == {}
