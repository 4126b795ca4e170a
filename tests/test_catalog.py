import pytest
from bson import ObjectId

import catalog
from errors import InvalidArgument, NotFound


def names(result):
    return [p["name"] for p in result["products"]]


def test_list_products_defaults_to_newest_first(db, make_product):
    make_product(name="Old")
    make_product(name="Mid")
    make_product(name="New")

    result = catalog.list_products(db)

    assert names(result) == ["New", "Mid", "Old"]
    assert result["total"] == 3
    assert result["total_pages"] == 1
    assert result["current_page"] == 1


@pytest.mark.parametrize(
    "sort, expected",
    [
        ("price-asc", ["B", "C", "A"]),
        ("price-desc", ["A", "C", "B"]),
        ("oldest", ["C", "A", "B"]),
        ("name", ["A", "B", "C"]),
        ("bogus", ["B", "A", "C"]),
    ],
)
def test_list_products_sorting(db, make_product, sort, expected):
    make_product(name="C", price=200)
    make_product(name="A", price=300)
    make_product(name="B", price=100)

    assert names(catalog.list_products(db, sort=sort)) == expected


def test_list_products_filters_combine(db, make_product):
    make_product(name="Tote Red", category="Tote", color="Burgundy Red", price=900, brand="Maison")
    make_product(name="Tote Blue", category="Tote", color="Navy", price=900, brand="Maison")
    make_product(name="Clutch Red", category="Clutch", color="red", price=900, brand="Maison")
    make_product(name="Pricey Red Tote", category="Tote", color="RED", price=9000, brand="Maison")
    make_product(name="Other Brand", category="Tote", color="Red", price=900, brand="Atelier")

    result = catalog.list_products(db, category="Tote", color="red", brand="Maison", min_price=500, max_price=1000)

    assert names(result) == ["Tote Red"]
    assert result["total"] == 1


def test_price_bounds_are_inclusive(db, make_product):
    make_product(name="Low", price=100)
    make_product(name="High", price=200)
    make_product(name="Out", price=201)

    result = catalog.list_products(db, min_price=100, max_price=200, sort="price-asc")
    assert names(result) == ["Low", "High"]


def test_material_filter_is_exact(db, make_product):
    make_product(name="Leather", material="Leather")
    make_product(name="Vegan", material="Vegan Leather")
    assert names(catalog.list_products(db, material="Leather")) == ["Leather"]


def test_color_filter_treats_input_literally(db, make_product):
    make_product(name="Plain", color="Black")
    assert catalog.list_products(db, color=".*")["total"] == 0


def test_pagination_counts_whole_filter(db, make_product):
    for i in range(5):
        make_product(name=f"P{i}")

    page = catalog.list_products(db, page=2, limit=2, sort="name")

    assert names(page) == ["P2", "P3"]
    assert page["count"] == 2
    assert page["total"] == 5
    assert page["total_pages"] == 3
    assert page["current_page"] == 2


def test_pagination_rejects_non_positive_values(db):
    with pytest.raises(InvalidArgument):
        catalog.list_products(db, page=0)
    with pytest.raises(InvalidArgument):
        catalog.list_products(db, limit=0)


def test_build_filter_text_search():
    assert catalog.build_filter(search="kelly") == {"$text": {"$search": "kelly"}}
    assert catalog.build_filter() == {}


def test_get_product(db, make_product):
    product = make_product()
    assert catalog.get_product(db, str(product["_id"]))["name"] == product["name"]
    with pytest.raises(NotFound):
        catalog.get_product(db, str(ObjectId()))
    with pytest.raises(NotFound):
        catalog.get_product(db, "abc")


def test_featured_products_capped_at_eight(db, make_product):
    for _ in range(10):
        make_product(is_featured=True)
    make_product(is_featured=False)

    featured = catalog.get_featured_products(db)
    assert len(featured) == 8
    assert all(p["is_featured"] for p in featured)


def test_create_product_validates_fields(db):
    data = {
        "name": "Speedy 25",
        "description": "Monogram canvas",
        "price": 0,
        "brand": "Maison",
        "category": "Tote",
        "material": "Canvas",
        "color": "Brown",
        "stock": 0,
    }
    product = catalog.create_product(db, data, [{"url": "/uploads/a.jpg", "public_id": "a.jpg"}])

    assert product["price"] == 0
    assert product["images"][0]["public_id"] == "a.jpg"
    assert product["is_featured"] is False
    assert product["created_at"] is not None

    for field, bad in [("category", "Backpack"), ("material", "Plastic"), ("price", -1), ("stock", -2)]:
        with pytest.raises(InvalidArgument):
            catalog.create_product(db, dict(data, **{field: bad}))
    with pytest.raises(InvalidArgument):
        catalog.create_product(db, {k: v for k, v in data.items() if k != "color"})


def test_update_product_partial_rules(db, make_product):
    product = make_product(name="Keep", price=1000, stock=4, is_featured=True)

    updated = catalog.update_product(
        db,
        product["_id"],
        {"name": "", "color": None, "brand": "Atelier", "price": 0, "stock": 0, "is_featured": False},
    )

    stored = db["product"].find_one({"_id": product["_id"]})
    assert updated["name"] == stored["name"] == "Keep"
    assert stored["color"] == "Black"
    assert stored["brand"] == "Atelier"
    assert stored["price"] == 0
    assert stored["stock"] == 0
    assert stored["is_featured"] is False


def test_update_product_appends_images_and_validates(db, make_product):
    product = make_product()
    updated = catalog.update_product(db, product["_id"], {}, [{"url": "/uploads/n.jpg", "public_id": "n.jpg"}])
    assert [i["public_id"] for i in updated["images"]] == [product["images"][0]["public_id"], "n.jpg"]

    with pytest.raises(InvalidArgument):
        catalog.update_product(db, product["_id"], {"category": "Backpack"})
    with pytest.raises(InvalidArgument):
        catalog.update_product(db, product["_id"], {"stock": -1})
    with pytest.raises(NotFound):
        catalog.update_product(db, ObjectId(), {"name": "x"})


class RecordingStorage:
    def __init__(self):
        self.deleted = []

    def delete(self, public_id):
        self.deleted.append(public_id)


def test_delete_product_removes_images_then_record(db, make_product):
    product = make_product(images=[{"url": "/uploads/a.jpg", "public_id": "a.jpg"}, {"url": "/uploads/b.jpg", "public_id": "b.jpg"}])
    storage = RecordingStorage()

    catalog.delete_product(db, str(product["_id"]), storage)

    assert storage.deleted == ["a.jpg", "b.jpg"]
    assert db["product"].find_one({"_id": product["_id"]}) is None
    with pytest.raises(NotFound):
        catalog.delete_product(db, str(product["_id"]), storage)
