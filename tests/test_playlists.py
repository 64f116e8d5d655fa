from bson import ObjectId

from conftest import auth, make_playlist, make_video


def test_create_playlist(client, db, alice):
    res = client.post("/api/v1/playlists", json={"name": "Favorites", "description": "x"}, headers=auth(alice))
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["name"] == "Favorites"
    assert data["owner"] == str(alice["_id"])
    assert data["videos"] == []


def test_create_playlist_requires_name_and_description(client, db, alice):
    for payload in ({"name": "Favorites"}, {"description": "x"}, {"name": " ", "description": "x"}):
        res = client.post("/api/v1/playlists", json=payload, headers=auth(alice))
        assert res.status_code == 400
    assert db["playlist"].count_documents({}) == 0


def test_add_video_twice_keeps_one_entry(client, db, alice):
    playlist = make_playlist(db, alice)
    video = make_video(db, alice)
    url = f"/api/v1/playlists/add/{video['_id']}/{playlist['_id']}"

    assert client.patch(url, headers=auth(alice)).status_code == 200
    res = client.patch(url, headers=auth(alice))
    assert res.status_code == 200
    assert res.json()["data"]["videos"] == [str(video["_id"])]
    assert db["playlist"].find_one({"_id": playlist["_id"]})["videos"] == [video["_id"]]


def test_remove_video_from_playlist(client, db, alice):
    playlist = make_playlist(db, alice)
    video = make_video(db, alice)
    client.patch(f"/api/v1/playlists/add/{video['_id']}/{playlist['_id']}", headers=auth(alice))

    res = client.patch(f"/api/v1/playlists/remove/{video['_id']}/{playlist['_id']}", headers=auth(alice))
    assert res.status_code == 200
    assert res.json()["data"]["videos"] == []


def test_anyones_video_can_be_added_by_the_playlist_owner(client, db, alice, bob):
    playlist = make_playlist(db, alice)
    video = make_video(db, bob)
    res = client.patch(f"/api/v1/playlists/add/{video['_id']}/{playlist['_id']}", headers=auth(alice))
    assert res.status_code == 200


def test_non_owner_cannot_change_playlist(client, db, alice, bob):
    playlist = make_playlist(db, alice)
    video = make_video(db, bob)
    headers = auth(bob)

    assert client.patch(f"/api/v1/playlists/add/{video['_id']}/{playlist['_id']}", headers=headers).status_code == 403
    assert client.patch(f"/api/v1/playlists/remove/{video['_id']}/{playlist['_id']}", headers=headers).status_code == 403
    res = client.patch(f"/api/v1/playlists/{playlist['_id']}", json={"name": "Mine", "description": "y"}, headers=headers)
    assert res.status_code == 403
    assert client.delete(f"/api/v1/playlists/{playlist['_id']}", headers=headers).status_code == 403

    stored = db["playlist"].find_one({"_id": playlist["_id"]})
    assert stored["name"] == "Favorites"
    assert stored["videos"] == []


def test_add_video_missing_entities(client, db, alice):
    playlist = make_playlist(db, alice)
    video = make_video(db, alice)
    res = client.patch(f"/api/v1/playlists/add/{ObjectId()}/{playlist['_id']}", headers=auth(alice))
    assert res.status_code == 404
    res = client.patch(f"/api/v1/playlists/add/{video['_id']}/{ObjectId()}", headers=auth(alice))
    assert res.status_code == 404
    res = client.patch(f"/api/v1/playlists/add/bad/{playlist['_id']}", headers=auth(alice))
    assert res.status_code == 400


def test_update_playlist(client, db, alice):
    playlist = make_playlist(db, alice)
    url = f"/api/v1/playlists/{playlist['_id']}"

    assert client.patch(url, json={"name": "Only name"}, headers=auth(alice)).status_code == 400
    res = client.patch(url, json={"name": "Watch later", "description": "queue"}, headers=auth(alice))
    assert res.status_code == 200
    assert res.json()["data"]["name"] == "Watch later"
    assert res.json()["data"]["description"] == "queue"


def test_delete_playlist(client, db, alice):
    playlist = make_playlist(db, alice)
    res = client.delete(f"/api/v1/playlists/{playlist['_id']}", headers=auth(alice))
    assert res.status_code == 200
    assert db["playlist"].count_documents({}) == 0

    res = client.delete(f"/api/v1/playlists/{playlist['_id']}", headers=auth(alice))
    assert res.status_code == 404


def test_get_missing_playlist(client):
    assert client.get(f"/api/v1/playlists/{ObjectId()}").status_code == 404
    assert client.get("/api/v1/playlists/123").status_code == 400


def test_removed_video_can_still_be_pulled_from_playlist(client, db, alice):
    playlist = make_playlist(db, alice)
    video = make_video(db, alice)
    client.patch(f"/api/v1/playlists/add/{video['_id']}/{playlist['_id']}", headers=auth(alice))
    db["video"].delete_one({"_id": video["_id"]})

    res = client.patch(f"/api/v1/playlists/remove/{video['_id']}/{playlist['_id']}", headers=auth(alice))
    assert res.status_code == 200
    assert res.json()["data"]["videos"] == []


def test_get_playlist_by_id_shows_published_videos_only(client, db, alice, bob):
    playlist = make_playlist(db, alice)
    shown = make_video(db, alice, title="Shown", views=5)
    hidden = make_video(db, bob, title="Hidden", published=False, views=7)
    db["playlist"].update_one({"_id": playlist["_id"]}, {"$set": {"videos": [shown["_id"], hidden["_id"]]}})

    res = client.get(f"/api/v1/playlists/{playlist['_id']}")
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["id"] == str(playlist["_id"])
    assert data["name"] == "Favorites"
    assert data["total_videos"] == 1
    assert data["total_views"] == 5
    assert [v["id"] for v in data["videos"]] == [str(shown["_id"])]
    assert data["videos"][0]["title"] == "Shown"
    assert "owner" not in data["videos"][0]
    assert data["owner"] == {
        "id": str(alice["_id"]),
        "username": "alice",
        "full_name": "Alice",
        "avatar": "/static/avatars/alice.png",
    }


def test_get_playlist_without_published_videos_has_zero_totals(client, db, alice):
    playlist = make_playlist(db, alice)
    hidden = make_video(db, alice, published=False, views=3)
    db["playlist"].update_one({"_id": playlist["_id"]}, {"$set": {"videos": [hidden["_id"]]}})

    data = client.get(f"/api/v1/playlists/{playlist['_id']}").json()["data"]
    assert data["videos"] == []
    assert data["total_videos"] == 0
    assert data["total_views"] == 0


def test_get_user_playlists_counts_all_member_videos(client, db, alice, bob):
    favorites = make_playlist(db, alice)
    empty = make_playlist(db, alice, name="Later")
    make_playlist(db, bob, name="Not mine")
    published = make_video(db, alice, views=5)
    unpublished = make_video(db, alice, published=False, views=7)
    db["playlist"].update_one(
        {"_id": favorites["_id"]}, {"$set": {"videos": [published["_id"], unpublished["_id"]]}}
    )

    res = client.get(f"/api/v1/playlists/user/{alice['_id']}")
    assert res.status_code == 200
    by_name = {p["name"]: p for p in res.json()["data"]}
    assert set(by_name) == {"Favorites", "Later"}
    assert by_name["Favorites"]["id"] == str(favorites["_id"])
    assert by_name["Favorites"]["total_videos"] == 2
    assert by_name["Favorites"]["total_views"] == 12
    assert "videos" not in by_name["Favorites"]
    assert by_name["Later"]["id"] == str(empty["_id"])
    assert by_name["Later"]["total_videos"] == 0
    assert by_name["Later"]["total_views"] == 0
