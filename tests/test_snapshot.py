from pagelingo.document import PageDocument
from pagelingo.extractor import TextExtractor
from pagelingo.snapshot import OriginalStateStore


def test_restore_writes_back_original_text(document):
    extractor = TextExtractor(document)
    store = OriginalStateStore(document)
    store.snapshot(extractor.extract_translatable_nodes())

    for node in extractor.extract_translatable_nodes():
        document.replace_text(node, node.text.upper() + "!")

    restored = store.restore(extractor.extract_translatable_nodes())

    assert restored == 2
    assert [n.text for n in extractor.extract_translatable_nodes()] == ["こんにちは", "世界"]


def test_nodes_added_after_snapshot_are_left_alone(document):
    extractor = TextExtractor(document)
    store = OriginalStateStore(document)
    store.snapshot(extractor.extract_translatable_nodes())

    document.append_html(document.get_element_by_id("feed"), "<p>new</p>")
    nodes = extractor.extract_translatable_nodes()
    document.replace_text(nodes[2], "changed")

    store.restore(extractor.extract_translatable_nodes())

    assert [n.text for n in extractor.extract_translatable_nodes()] == [
        "こんにちは",
        "世界",
        "changed",
    ]


def test_insertion_before_snapshotted_nodes_does_not_shift_originals():
    document = PageDocument.from_html("<body><div id='top'></div><p>alpha</p><p>beta</p></body>")
    extractor = TextExtractor(document)
    store = OriginalStateStore(document)
    store.snapshot(extractor.extract_translatable_nodes())
    for node in extractor.extract_translatable_nodes():
        document.replace_text(node, "translated")

    document.append_html(document.get_element_by_id("top"), "<p>banner</p>")
    store.restore(extractor.extract_translatable_nodes())

    assert [n.text for n in extractor.extract_translatable_nodes()] == [
        "banner",
        "alpha",
        "beta",
    ]


def test_first_capture_wins_and_reset_rearms(document):
    extractor = TextExtractor(document)
    store = OriginalStateStore(document)
    nodes = extractor.extract_translatable_nodes()

    assert store.snapshot(nodes) == 2
    document.replace_text(nodes[0], "Hello")
    assert store.snapshot(extractor.extract_translatable_nodes()) == 0
    assert store.original_text(nodes[0]) == "こんにちは"
    assert store.snapshot_positions() == {0: "こんにちは", 1: "世界"}

    store.reset()
    assert len(store) == 0
    store.snapshot(extractor.extract_translatable_nodes())
    assert store.original_text(nodes[0]) == "Hello"


def test_restore_without_nodes_reaches_blanked_and_skips_removed_positions(document):
    extractor = TextExtractor(document)
    store = OriginalStateStore(document)
    nodes = extractor.extract_translatable_nodes()
    store.snapshot(nodes)
    document.replace_text(nodes[0], "   ")
    document.replace_text(nodes[1], "World")
    document.remove(document.body.find_all("p")[1])

    assert store.restore() == 1
    assert [n.text for n in extractor.extract_translatable_nodes()] == ["こんにちは"]
