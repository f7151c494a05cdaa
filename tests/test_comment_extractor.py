import json

from TT_Video_Crawler.src.scraper_functions.comment_extractor import comments_from_island, extract_comments


def comment_block(text, user='alice', likes='12', date='2d ago', extra=''):
    return f'''
    <div class="css-13wx63w-DivCommentObjectWrapper">
      <div class="css-13x3qpp-DivUsernameContentWrapper"><a href="/@{user}"><p>{user}</p></a></div>
      <span data-e2e="comment-level-1"><p>{text}</p></span>
      <div class="css-njhskk-DivCommentSubContentWrapper"><span>{date}</span><span>Reply</span></div>
      <div class="css-1nd5cw-DivLikeContainer"><span>{likes}</span></div>
      {extra}
    </div>
    '''


def reply_block(text, user='bob'):
    return f'''
    <div class="css-1gstnae-DivCommentItemWrapper">
      <div class="css-13x3qpp-DivUsernameContentWrapper"><a href="/@{user}"><p>{user}</p></a></div>
      <span data-e2e="comment-level-2"><p>{text}</p></span>
      <div class="css-1nd5cw-DivLikeContainer"><span>3</span></div>
    </div>
    '''


def test_top_level_fields():
    comments = extract_comments(comment_block('Great video!', likes='1.2K'))

    assert len(comments) == 1
    c = comments[0]
    assert c.id == 'comment_1'
    assert c.content == 'Great video!'
    assert c.author == 'alice'
    assert c.author_profile_url == 'https://www.tiktok.com/@alice'
    assert c.like_count == 1200
    assert c.date_text == '2d ago'
    assert c.is_reply is False
    assert c.parent_comment_id is None


def test_reply_links_to_structural_parent():
    html = f'''
    <div class="css-7whb78-DivCommentListContainer">
      {comment_block('Great video!')}
      <div class="css-9kgp5o-DivReplyContainer">{reply_block('Thanks!')}</div>
    </div>
    '''
    comments = extract_comments(html)

    assert [c.id for c in comments] == ['comment_1', 'comment_2']
    parent, reply = comments
    assert parent.has_replies is True
    assert reply.content == 'Thanks!'
    assert reply.author == 'bob'
    assert reply.is_reply is True
    assert reply.parent_comment_id == 'comment_1'


def test_single_character_content_is_discarded():
    html = comment_block('a') + comment_block('Second one') + comment_block('Third one')
    comments = extract_comments(html)

    assert [c.content for c in comments] == ['Second one', 'Third one']
    assert [c.id for c in comments] == ['comment_1', 'comment_2']


def test_view_replies_affordance_sets_has_replies():
    extra = '<div class="css-1idgi02-DivViewRepliesContainer"><span>View 4 replies</span></div>'
    comments = extract_comments(comment_block('Where is this?', extra=extra))
    assert comments[0].has_replies is True


def test_orphan_reply_parent_resolved_by_content():
    html = '''
    <div class="list">
      <div data-e2e="comment-item"><p>Unique parent text</p></div>
      <div class="css-x-Other"><p>Unique parent text</p></div>
      <div class="css-1-DivReplyContainer"><div data-e2e="comment-item"><p>A late reply</p></div></div>
    </div>
    '''
    comments = extract_comments(html)

    assert [c.content for c in comments] == ['Unique parent text', 'A late reply']
    assert comments[1].is_reply is True
    assert comments[1].parent_comment_id == 'comment_1'


def test_ambiguous_content_leaves_parent_unresolved():
    html = '''
    <div class="list">
      <div data-e2e="comment-item"><p>Same text</p></div>
      <div data-e2e="comment-item"><p>Same text</p></div>
      <div class="css-x-Other"><p>Same text</p></div>
      <div class="css-1-DivReplyContainer"><div data-e2e="comment-item"><p>Which one?</p></div></div>
    </div>
    '''
    comments = extract_comments(html)

    orphan = comments[-1]
    assert orphan.content == 'Which one?'
    assert orphan.is_reply is True
    assert orphan.parent_comment_id is None


def test_data_island_is_authoritative():
    island = {
        "commentList": [
            {
                "cid": "7301",
                "text": "From JSON",
                "user": {"uniqueId": "carol"},
                "diggCount": 15,
                "createTime": 1700000000,
                "replyCommentTotal": 1,
                "replies": [
                    {"cid": "7302", "text": "Reply from JSON", "user": {"nickname": "Dee"}, "diggCount": 2},
                ],
            },
            {"cid": "7303", "text": "x", "replies": [{"cid": "7304", "text": "Lost parent"}]},
        ]
    }
    html = comment_block('DOM comment') + f'<script>window.__DATA__ = {json.dumps(island)};</script>'

    comments = extract_comments(html)

    assert [c.id for c in comments] == ['7301', '7302', '7304']
    top, reply, orphan = comments
    assert top.author == 'carol'
    assert top.author_profile_url == 'https://www.tiktok.com/@carol'
    assert top.like_count == 15
    assert top.date_text == '2023-11-14T22:13:20+00:00'
    assert top.has_replies is True
    assert reply.is_reply is True
    assert reply.parent_comment_id == '7301'
    assert reply.author == 'Dee'
    assert orphan.is_reply is True
    assert orphan.parent_comment_id is None


def test_init_props_island():
    props = {"comments": [{"id": "9", "content": "Props comment", "author": "eve"}]}
    html = f'<script>window.__INIT_PROPS__ = {json.dumps(props)}</script>'

    comments = extract_comments(html)

    assert len(comments) == 1
    assert comments[0].id == '9'
    assert comments[0].author == 'eve'


def test_empty_data_island_falls_back_to_dom():
    html = comment_block('Great video!') + '<script>{"commentList": []}</script>'

    comments = extract_comments(html)

    assert [c.content for c in comments] == ['Great video!']


def test_island_without_usable_comments_falls_back_to_dom():
    island = {"commentList": [{"cid": "1", "text": "x"}]}
    html = comment_block('Great video!') + f'<script>{json.dumps(island)}</script>'

    assert [c.content for c in extract_comments(html)] == ['Great video!']


def test_island_has_replies_flag():
    comments = comments_from_island([
        {'id': '7', 'text': 'hello there', 'has_replies': True},
        {'id': '8', 'text': 'no thread', 'has_replies': False},
        {'id': '9', 'text': 'counted', 'replyCommentTotal': '2'},
    ])

    assert [c.has_replies for c in comments] == [True, False, True]


def test_structural_fallback_keeps_innermost():
    html = '''
    <div class="outer">
      <div class="inner"><img class="user-avatar" src="a.png"><span>@frank</span><p>Love this song</p></div>
    </div>
    '''
    comments = extract_comments(html)

    assert len(comments) == 1
    assert comments[0].content == 'Love this song'
    assert comments[0].author == '@frank'
    assert comments[0].author_profile_url == 'https://www.tiktok.com/@frank'


def test_empty_snapshot():
    assert extract_comments('<html><body>No comments yet</body></html>') == []
