from __future__ import annotations

from webscraper.crawler.sitetree import SiteTree

from fakes import make_scraped_page

ROOT = "https://ex.com/"


def _pages():
    return [
        make_scraped_page(ROOT, title="Home", links=["https://ex.com/a", "https://ex.com/b"]),
        make_scraped_page("https://ex.com/a", parent_url=ROOT, title="A", depth=1),
        make_scraped_page("https://ex.com/b", parent_url=ROOT, title="B", depth=1, images=["https://ex.com/b.png"]),
        make_scraped_page("https://ex.com/a/c", parent_url="https://ex.com/a", title="C", depth=2),
    ]


def test_from_pages_links_children_to_parents():
    tree = SiteTree.from_pages(_pages())

    assert len(tree) == 4
    assert tree.roots == [0]
    root = tree.get("https://ex.com")
    assert root is not None
    assert [tree.nodes[child].url for child in root.children] == ["https://ex.com/a", "https://ex.com/b"]
    assert tree.get("https://ex.com/a/c").parent_id == tree.get("https://ex.com/a").node_id


def test_walk_is_depth_first_preorder():
    tree = SiteTree.from_pages(_pages())

    assert [(level, node.title) for level, node in tree.walk()] == [
        (0, "Home"),
        (1, "A"),
        (2, "C"),
        (1, "B"),
    ]


def test_rows_carry_parent_urls_and_counts():
    rows = SiteTree.from_pages(_pages()).to_rows()

    assert rows[0]["parent_url"] is None
    assert rows[0]["link_count"] == 2
    assert rows[2]["parent_url"] == "https://ex.com/a"
    assert rows[3]["image_count"] == 1


def test_unknown_parent_and_self_link_become_roots():
    tree = SiteTree.from_pages(
        [
            make_scraped_page("https://ex.com/x", parent_url="https://ex.com/not-collected"),
            make_scraped_page("https://ex.com/y", parent_url="https://ex.com/y/"),
        ]
    )

    assert tree.roots == [0, 1]
    assert all(not node.children for node in tree.nodes)


def test_parent_cycle_is_walked_once():
    tree = SiteTree.from_pages(
        [
            make_scraped_page("https://ex.com/a", parent_url="https://ex.com/b"),
            make_scraped_page("https://ex.com/b", parent_url="https://ex.com/a"),
        ]
    )

    assert tree.roots == []
    walked = [node.url for _, node in tree.walk()]
    assert walked == ["https://ex.com/a", "https://ex.com/b"]
    assert len(tree.to_rows()) == 2


def test_duplicate_urls_share_one_node():
    tree = SiteTree.from_pages([make_scraped_page(ROOT), make_scraped_page("https://ex.com")])

    assert len(tree) == 1
    assert tree.to_json()["roots"] == [0]
