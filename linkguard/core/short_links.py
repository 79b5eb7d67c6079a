from typing import Iterable, Optional

from linkguard.core.heuristics import extract_domain

KNOWN_SHORT_LINK_SERVICES = frozenset({
    'tinyurl.com', 'bit.ly', 'goo.gl', 'ow.ly', 'is.gd', 'buff.ly',
    'adf.ly', 't.co', 'lnkd.in', 'fb.me', 'tr.im', 'tiny.cc',
    'url.ie', 'shrtco.de', 'cutt.ly', 'shorturl.at', 'rb.gy',
    'soo.gd', 's2r.co', 'click.ru', 'x.co', 'qr.net', 'v.gd',
    'cur.lv', 'short.ie', 'ity.im', 'clck.ru', 'u.to', 'j.mp',
    'bc.vc', 'db.tt', 'po.st', 'short.cm', 'shorte.st',
})


class ShortLinkRegistry:
    """
    Known short-link hostnames.

    A domain belongs to a service when it equals the service hostname or is
    a subdomain of it (``www.bit.ly``); the matched hostname is the link's
    family.
    """

    def __init__(self, services: Optional[Iterable[str]] = None):
        source = KNOWN_SHORT_LINK_SERVICES if services is None else services
        self.services = frozenset(s.strip().lower() for s in source if s and s.strip())

    def family_of(self, domain: Optional[str]) -> Optional[str]:
        if not domain:
            return None
        domain = domain.lower().rstrip('.')
        # longest match wins so nested registrations resolve to the specific one
        for service in sorted(self.services, key=len, reverse=True):
            if domain == service or domain.endswith('.' + service):
                return service
        return None

    def is_short_link(self, domain: Optional[str]) -> bool:
        return self.family_of(domain) is not None

    def same_family(self, url_a: str, url_b: str) -> bool:
        family = self.family_of(extract_domain(url_a))
        return family is not None and family == self.family_of(extract_domain(url_b))
