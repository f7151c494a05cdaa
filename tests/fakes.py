"""Stand-ins for playwright objects used across the test suite."""


class FakeElement:
    def __init__(self, page, selector):
        self.page = page
        self.selector = selector

    async def click(self):
        self.page.clicked.append(self.selector)

    async def is_visible(self):
        return True


class FakeKeyboard:
    def __init__(self):
        self.pressed = []
        self.fail_on = None

    async def press(self, key):
        self.pressed.append(key)
        if self.fail_on is not None and len(self.pressed) >= self.fail_on:
            raise RuntimeError("page crashed")


class FakePage:
    """Just enough of playwright's Page for the crawler code paths."""

    def __init__(self, contents=None, present=None, evaluate=None, url='about:blank'):
        self.contents = list(contents or ['<html><title>TikTok</title></html>'])
        self.present = set(present or [])
        self.handlers = dict(evaluate or {})
        self.url = url
        self.keyboard = FakeKeyboard()
        self.visited = []
        self.goto_errors = []
        self.reloads = 0
        self.screenshots = []
        self.evaluated = []
        self.clicked = []

    async def goto(self, url, **kwargs):
        self.visited.append(url)
        if self.goto_errors:
            error = self.goto_errors.pop(0)
            if error:
                raise error
        self.url = url

    async def reload(self, **kwargs):
        self.reloads += 1

    async def content(self):
        if len(self.contents) > 1:
            return self.contents.pop(0)
        return self.contents[0]

    async def query_selector(self, selector):
        return FakeElement(self, selector) if selector in self.present else None

    async def wait_for_selector(self, selector, timeout=None):
        if selector in self.present:
            return FakeElement(self, selector)
        raise TimeoutError(f"Timeout waiting for {selector}")

    async def evaluate(self, expression, arg=None):
        self.evaluated.append(expression)
        handler = self.handlers.get(expression)
        if callable(handler):
            return handler(arg)
        return handler

    async def screenshot(self, path=None, full_page=False):
        self.screenshots.append(path)


class FakeContext:
    def __init__(self, page=None, cookies=None):
        self.page = page
        self.saved_cookies = list(cookies or [])
        self.added = []

    async def cookies(self):
        return list(self.saved_cookies)

    async def add_cookies(self, cookies):
        self.added.append(list(cookies))


def sequence(values):
    """Handler returning the given values in order, then repeating the last one."""
    values = list(values)

    def next_value(_arg=None):
        if len(values) > 1:
            return values.pop(0)
        return values[0]
    return next_value


