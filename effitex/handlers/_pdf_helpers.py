"""Low-level PDF structure helpers shared across handlers."""

from __future__ import annotations

import pikepdf


def raw(obj: pikepdf.Object) -> pikepdf.Object:
    """Unwrap ObjectHelper wrappers (e.g. Page) to the underlying object."""
    return obj.obj if hasattr(obj, "obj") else obj


def ensure_struct_tree_root(pdf: pikepdf.Pdf) -> pikepdf.Dictionary:
    """Return StructTreeRoot, creating it if absent."""
    if "/StructTreeRoot" in pdf.Root:
        root = pdf.Root["/StructTreeRoot"]
    else:
        root = pdf.make_indirect(pikepdf.Dictionary({
            "/Type": pikepdf.Name("/StructTreeRoot"),
            "/K": pikepdf.Array(),
        }))
        pdf.Root["/StructTreeRoot"] = root

    # PDF/UA requires /RoleMap, even if empty
    if "/RoleMap" not in root:
        root["/RoleMap"] = pikepdf.Dictionary()

    return root


def ensure_mark_info(pdf: pikepdf.Pdf, marked: bool = True) -> pikepdf.Dictionary:
    """Return the MarkInfo dict, creating it if absent, with /Marked set."""
    if "/MarkInfo" not in pdf.Root:
        pdf.Root["/MarkInfo"] = pikepdf.Dictionary()

    mark_info = pdf.Root["/MarkInfo"]
    mark_info["/Marked"] = marked
    return mark_info


def ensure_parent_tree(struct_root: pikepdf.Dictionary, pdf: pikepdf.Pdf) -> pikepdf.Dictionary:
    """Return a ParentTree with a flat /Nums array, creating or flattening as needed."""
    if "/ParentTree" not in struct_root:
        struct_root["/ParentTree"] = pdf.make_indirect(pikepdf.Dictionary({
            "/Nums": pikepdf.Array(),
        }))
    tree = struct_root["/ParentTree"]
    if "/Nums" not in tree:
        flat = pikepdf.Array()
        for key, value in number_tree_items(tree):
            flat.append(key)
            flat.append(value)
        tree["/Nums"] = flat
        if "/Kids" in tree:
            del tree["/Kids"]
    return tree


def number_tree_items(tree: pikepdf.Object) -> list[tuple[int, pikepdf.Object]]:
    """Flatten a number tree (``/Nums`` leaves under ``/Kids``) into pairs."""
    items: list[tuple[int, pikepdf.Object]] = []
    if not isinstance(tree, pikepdf.Dictionary):
        return items
    nums = tree.get("/Nums")
    if isinstance(nums, pikepdf.Array):
        for i in range(0, len(nums) - 1, 2):
            items.append((int(nums[i]), nums[i + 1]))
    kids = tree.get("/Kids")
    if isinstance(kids, pikepdf.Array):
        for kid in kids:
            items.extend(number_tree_items(kid))
    return items


def next_parent_tree_key(struct_root: pikepdf.Dictionary) -> int:
    """Allocate the next ParentTree key and advance /ParentTreeNextKey."""
    key = 0
    if "/ParentTreeNextKey" in struct_root:
        key = int(struct_root["/ParentTreeNextKey"])
    elif "/ParentTree" in struct_root:
        keys = [k for k, _ in number_tree_items(struct_root["/ParentTree"])]
        key = max(keys) + 1 if keys else 0
    struct_root["/ParentTreeNextKey"] = key + 1
    return key


def parent_tree_get(struct_root: pikepdf.Dictionary, key: int) -> pikepdf.Object | None:
    if "/ParentTree" not in struct_root:
        return None
    for k, value in number_tree_items(struct_root["/ParentTree"]):
        if k == key:
            return value
    return None


def parent_tree_set(
    pdf: pikepdf.Pdf, struct_root: pikepdf.Dictionary, key: int, value: pikepdf.Object
) -> None:
    """Insert or replace *key* in the ParentTree, keeping /Nums sorted."""
    tree = ensure_parent_tree(struct_root, pdf)
    items = list(tree["/Nums"])
    pos = len(items)
    for i in range(0, len(items) - 1, 2):
        existing = int(items[i])
        if existing == key:
            tree["/Nums"][i + 1] = value
            return
        if existing > key:
            pos = i
            break
    items[pos:pos] = [key, value]
    tree["/Nums"] = pikepdf.Array(items)


def page_parent_array(pdf: pikepdf.Pdf, struct_root: pikepdf.Dictionary, page: pikepdf.Page) -> pikepdf.Array:
    """Return the ParentTree array for *page*'s MCIDs, allocating /StructParents."""
    page_obj = raw(page)
    if "/StructParents" in page_obj:
        existing = parent_tree_get(struct_root, int(page_obj["/StructParents"]))
        if isinstance(existing, pikepdf.Array):
            return existing
        key = int(page_obj["/StructParents"])
    else:
        key = next_parent_tree_key(struct_root)
        page_obj["/StructParents"] = key
    array = pdf.make_indirect(pikepdf.Array())
    parent_tree_set(pdf, struct_root, key, array)
    return array


def make_struct_elem(
    pdf: pikepdf.Pdf,
    tag: str,
    parent: pikepdf.Object,
    *,
    page: pikepdf.Object | None = None,
) -> pikepdf.Dictionary:
    """Create an indirect structure element and return it.

    Parameters
    ----------
    tag : e.g. "Document", "P", "H1", "Table"
    parent : parent structure element (or StructTreeRoot)
    page : optional page the element's content lives on
    """
    elem_dict: dict[str, pikepdf.Object] = {
        "/Type": pikepdf.Name("/StructElem"),
        "/S": pikepdf.Name(f"/{tag}"),
        "/P": raw(parent),
        "/K": pikepdf.Array(),
    }
    if page is not None:
        elem_dict["/Pg"] = raw(page)
    return pdf.make_indirect(pikepdf.Dictionary(elem_dict))


def add_kid(parent: pikepdf.Object, child: pikepdf.Object) -> None:
    """Append *child* to *parent*'s /K array."""
    if "/K" not in parent:
        parent["/K"] = pikepdf.Array()
    kids = parent["/K"]
    if isinstance(kids, pikepdf.Array):
        kids.append(child)
    else:
        # Single kid: convert to array
        parent["/K"] = pikepdf.Array([kids, child])


def get_kids(node: pikepdf.Object) -> list[pikepdf.Object]:
    """The /K entries of a structure node as a list."""
    if not isinstance(node, pikepdf.Dictionary) or "/K" not in node:
        return []
    kids = node["/K"]
    if isinstance(kids, pikepdf.Array):
        return list(kids)
    return [kids]


def is_struct_elem(obj: pikepdf.Object) -> bool:
    return isinstance(obj, pikepdf.Dictionary) and "/S" in obj and str(obj.get("/Type", "/StructElem")) == "/StructElem"


def walk_struct_tree(node: pikepdf.Object) -> list[pikepdf.Dictionary]:
    """Return all structure element descendants (depth-first, document order)."""
    elements: list[pikepdf.Dictionary] = []
    _walk(node, elements, set())
    return elements


def _walk(node: pikepdf.Object, elements: list[pikepdf.Dictionary], seen: set) -> None:
    for kid in get_kids(node):
        if not is_struct_elem(kid):
            continue
        key = kid.objgen if kid.is_indirect else id(kid)
        if key in seen:
            continue
        seen.add(key)
        elements.append(kid)
        _walk(kid, elements, seen)


def page_number(pdf: pikepdf.Pdf, page_ref: pikepdf.Object) -> int | None:
    """1-based page number of an indirect page reference, or None."""
    if not isinstance(page_ref, pikepdf.Dictionary) or not page_ref.is_indirect:
        return None
    for idx, page in enumerate(pdf.pages):
        if page.obj.objgen == page_ref.objgen:
            return idx + 1
    return None


def first_content_ref(elem: pikepdf.Dictionary) -> tuple[pikepdf.Object | None, int | None]:
    """(page, mcid) of the first marked-content kid of *elem*.

    The page comes from an MCR dict's /Pg or falls back to the element's /Pg.
    """
    page = elem.get("/Pg")
    for kid in get_kids(elem):
        if isinstance(kid, int):
            return page, int(kid)
        if isinstance(kid, pikepdf.Dictionary) and "/MCID" in kid:
            return kid.get("/Pg", page), int(kid["/MCID"])
    return page, None
