from topic import TOPIC_SEPARATOR, TopicTreeEntry


def _leaf_order(item):
    return item[0]


def build_tree(history):
    """
    Builds the topic tree from a flat history snapshot.

    :param history: Mapping of topic to its history. A history needs a `count`
        of received messages and the `last_payload` bytes (or None).
    :return: The root entries sorted by their leaf name.
    """
    summaries = {}
    segments_below = {}
    for topic, topic_history in history.items():
        summaries[topic] = (topic_history.count, topic_history.last_payload)

        # Group by segment, level by level
        node = segments_below
        for segment in topic.split(TOPIC_SEPARATOR):
            node = node.setdefault(segment, {})

    # Entries are created children first, using an explicit stack as topics can be arbitrarily deep
    roots = []
    stack = [(None, iter(sorted(segments_below.items(), key=_leaf_order)), roots)]
    while stack:
        topic, children, entries_below = stack[-1]
        child = next(children, None)
        if child is not None:
            leaf, below = child
            child_topic = leaf if topic is None else f"{topic}{TOPIC_SEPARATOR}{leaf}"
            stack.append((child_topic, iter(sorted(below.items(), key=_leaf_order)), []))
            continue

        stack.pop()
        if topic is None:
            continue

        # Own messages only come from an exact match, a pure prefix stays at 0
        messages, last_payload = summaries.get(topic, (0, None))
        if not messages:
            last_payload = None
        stack[-1][2].append(TopicTreeEntry(
            topic,
            messages=messages,
            last_payload=last_payload,
            entries_below=entries_below,
        ))
    return roots


def get_visible(opened, entries):
    """Flattens the tree to the entries shown when the topics in `opened` are expanded."""
    result = []
    stack = [iter(entries)]
    while stack:
        entry = next(stack[-1], None)
        if entry is None:
            stack.pop()
            continue
        result.append(entry)
        if entry.topic in opened:
            stack.append(iter(entry.entries_below))
    return result


def get_ancestors(topic):
    """
    Returns every parent topic of the given topic, outermost first.

    "a/b/c" has the ancestors "a" and "a/b".
    """
    ancestors = []
    end = topic.find(TOPIC_SEPARATOR)
    while end != -1:
        ancestors.append(topic[:end])
        end = topic.find(TOPIC_SEPARATOR, end + 1)
    return ancestors


def get_parent(topic):
    end = topic.rfind(TOPIC_SEPARATOR)
    return topic[:end] if end != -1 else None


def with_ancestors_opened(opened, topic):
    # New set, the persisted open topics of the caller stay untouched
    effective = set(opened)
    if topic is not None:
        effective.update(get_ancestors(topic))
    return effective


def get_index_of_topic(entries, opened, topic):
    """
    Finds the position of a topic in the visible list.

    All ancestors of the topic are treated as opened for this lookup only, so
    the topic can be found even when the user never expanded them.

    :return: Zero-based index, or None when the topic is not in the tree.
    """
    visible = get_visible(with_ancestors_opened(opened, topic), entries)
    return index_in_visible(visible, topic)


def index_in_visible(visible, topic):
    for index, entry in enumerate(visible):
        if entry.topic == topic:
            return index
    return None
