from csv_import import CSV_HEADERS, generate_csv_template, parse_csv, split_list


def test_template_parses_cleanly():
    result = parse_csv(generate_csv_template())
    assert result.success
    assert len(result.rows) == 3
    assert result.rows[0]["name"] == "Premium Coffee Mug"
    # Third sample row has no SKU
    assert [w.field for w in result.warnings] == ["sku"]
    assert result.warnings[0].row == 4


def test_needs_header_and_data_row():
    result = parse_csv("name,description,category\n")
    assert not result.success
    assert result.errors[0].field == "file"


def test_missing_and_unknown_columns():
    result = parse_csv("name,colour\nMug,red\n")
    assert not result.success
    messages = [e.message for e in result.errors]
    assert "Missing required column: description" in messages
    assert "Missing required column: category" in messages
    assert any(m.startswith("Unknown column: colour") for m in messages)


def test_row_errors_reject_the_file():
    text = "\n".join([
        "name,description,category,price,status",
        "Mug,Nice mug,drinkware,9.99,active",
        ",No name,toys,-1,sold",
    ])
    result = parse_csv(text)
    assert not result.success
    assert result.rows is None
    fields = {e.field for e in result.errors if e.row == 3}
    assert fields == {"name", "category", "price", "status"}


def test_quoted_cells_and_bad_urls():
    text = "\n".join([
        "name,description,category,sku,thumbnail_url,additional_images",
        'Mug,"Tall, insulated mug",drinkware,MUG-1,not a url,/img/a.png;ftp//bad',
    ])
    result = parse_csv(text)
    assert result.success
    assert result.rows[0]["description"] == "Tall, insulated mug"
    assert {w.field for w in result.warnings} == {"thumbnail_url", "additional_images"}


def test_to_dict_shape():
    data = parse_csv(generate_csv_template()).to_dict()
    assert set(data) == {"success", "data", "errors", "warnings"}
    assert data["warnings"][0]["message"] == "SKU not provided, will be auto-generated"


def test_split_list():
    assert split_list(" a; b ;;c ") == ["a", "b", "c"]
    assert split_list(None) == []


def test_template_header_matches_columns():
    assert generate_csv_template().splitlines()[0].split(",") == CSV_HEADERS
