from TT_Video_Crawler.src.scraper_functions.video_extractor import (
    extract_video_details,
    extract_video_record,
)

URL = 'https://www.tiktok.com/@chef.anna/video/7300000000000000001'

FULL_PAGE = '''
<html><head>
  <meta property="og:title" content="Meta title">
</head><body>
  <div data-e2e="browse-video-desc">
    <span data-e2e="new-desc-span">Best pasta</span>
    <a data-e2e="search-common-link" href="/tag/pasta?lang=en">#pasta</a>
    <span data-e2e="new-desc-span">ever</span>
    <a data-e2e="search-common-link" href="/tag/food">#food</a>
    <a data-e2e="search-common-link" href="/tag/pasta">#pasta</a>
  </div>
  <div class="css-1abc-DivAvatarContainer"><a href="/@chef.anna"><img></a></div>
  <video><source src="https://v16.tiktokcdn.com/video.mp4"></video>
  <strong class="css-1-StrongText">1.2K</strong>
  <strong class="css-1-StrongText">34</strong>
  <strong class="css-1-StrongText">5M</strong>
  <strong class="css-1-StrongText">789</strong>
  <p>TikTok</p>
</body></html>
'''


def test_primary_strategies():
    raw = extract_video_details(FULL_PAGE, URL)

    assert raw['title'] == 'Best pasta ever'
    assert raw['hashtags'] == ['pasta', 'food']
    assert raw['source_media_url'] == 'https://v16.tiktokcdn.com/video.mp4'
    assert raw['channel_url'] == 'https://www.tiktok.com/@chef.anna'
    assert (raw['likes'], raw['comments'], raw['saved'], raw['shares']) == ('1.2K', '34', '5M', '789')


def test_record_counts_are_normalized():
    record = extract_video_record(FULL_PAGE, URL)
    assert record.url == URL
    assert record.like_count == 1200
    assert record.comment_count == 34
    assert record.saved_count == 5_000_000
    assert record.share_count == 789


def test_fallback_strategies():
    html = '''
    <html><head><meta property="og:title" content="Only meta"></head><body>
      <div class="css-9-DivDescriptionContainer">Sunday vibes <a href="/tag/sunday">#sunday</a></div>
      <script>window.x = {"playAddr":"https:\\u002F\\u002Fcdn.example\\u002Fv.mp4"}</script>
      <span data-e2e="video-author-uniqueid">@dj.max</span>
      <strong data-e2e="like-count">10K</strong>
      <strong data-e2e="comment-count">200</strong>
      <strong data-e2e="undefined-count">3</strong>
      <strong data-e2e="undefined-count">999</strong>
      <strong data-e2e="share-count">12</strong>
    </body></html>
    '''
    raw = extract_video_details(html, URL)

    assert raw['title'] == 'Sunday vibes'
    assert raw['hashtags'] == ['sunday']
    assert raw['source_media_url'] == 'https://cdn.example/v.mp4'
    assert raw['channel_url'] == 'https://www.tiktok.com/@dj.max'
    assert (raw['likes'], raw['comments'], raw['saved'], raw['shares']) == ('10K', '200', '3', '12')


def test_hashtags_from_title_text():
    html = '<div data-e2e="video-desc">Trying this #recipe #easy</div>'
    raw = extract_video_details(html, URL)
    assert raw['title'] == 'Trying this #recipe #easy'
    assert raw['hashtags'] == ['recipe', 'easy']


def test_tag_links_win_over_title_hashtags():
    html = '<div data-e2e="video-desc">Dinner #quick</div><a href="/tag/dinner">#dinner</a>'
    raw = extract_video_details(html, URL)
    assert raw['hashtags'] == ['dinner']


def test_meta_title_and_url_channel():
    html = '<html><head><meta property="og:title" content="From meta"></head><body></body></html>'
    raw = extract_video_details(html, URL)
    assert raw['title'] == 'From meta'
    assert raw['channel_url'] == 'https://www.tiktok.com/@chef.anna'
    assert raw['source_media_url'] is None


def test_everything_missing_uses_defaults():
    record = extract_video_record('<html></html>', 'https://www.tiktok.com/video/1')
    assert record.title == ''
    assert record.channel_url == 'Unknown Channel'
    assert record.hashtags == []
    assert record.like_count == 0


def test_og_video_and_mp4_link():
    html = '<meta property="og:video" content="https://cdn/og.mp4"><a href="https://cdn/a.mp4">x</a>'
    assert extract_video_details(html, URL)['source_media_url'] == 'https://cdn/og.mp4'
    html = '<a href="https://cdn/a.mp4">download</a>'
    assert extract_video_details(html, URL)['source_media_url'] == 'https://cdn/a.mp4'
