"""
Unit tests for live query subscriptions.
"""

from ryme.services.live_query import LiveQueryHub


def _hub(state):
    return LiveQueryHub(
        reader=lambda path: list(state.get(path, [])),
        topic_of=lambda path: path.strip('/').split('/')[0],
    )


class TestLiveQueryHub:

    def test_initial_push_and_full_recompute(self):
        state = {'/orders': [1]}
        hub = _hub(state)
        received = []

        hub.subscribe('/orders', received.append)
        state['/orders'] = [1, 2]
        delivered = hub.notify({'orders'})

        assert delivered == 1
        assert received == [[1], [1, 2]]

    def test_only_matching_topics_are_recomputed(self):
        hub = _hub({})
        orders, products = [], []
        hub.subscribe('/orders', orders.append, initial=False)
        hub.subscribe('/products', products.append, initial=False)

        hub.notify(['products'])

        assert orders == []
        assert products == [[]]

    def test_unsubscribe_detaches_callback(self):
        hub = _hub({})
        received = []
        unsubscribe = hub.subscribe('/orders', received.append, initial=False)

        unsubscribe()
        hub.notify({'orders'})

        assert received == []
        assert hub.subscriber_count() == 0

    def test_failing_subscriber_does_not_block_others(self):
        hub = _hub({})
        received = []

        def broken(result):
            raise RuntimeError('boom')

        hub.subscribe('/orders', broken, initial=False)
        hub.subscribe('/orders', received.append, initial=False)

        assert hub.notify({'orders'}) == 1
        assert received == [[]]
