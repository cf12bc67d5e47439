"""Parser for WebDAV XML response bodies."""

import logging

from lxml import etree

from .exceptions import MalformedResponseError
from .models import Multistatus, Prop, dav

log = logging.getLogger(__name__)


class WebDavXmlUtils:
    """Conversion of WebDAV XML bodies into the model."""

    @staticmethod
    def to_tree(content: bytes, root: str) -> etree._Element:
        """Parse content and check the name of its root element.

        :param content: the XML body of a response.
        :param root: the expected local name of the root element in DAV: namespace.
        :return: the root element.
        """
        if not content or not content.strip():
            raise MalformedResponseError(f"empty body, expected {root}")

        try:
            tree = etree.fromstring(
                content, etree.XMLParser(resolve_entities=False, no_network=True)
            )
        except etree.XMLSyntaxError as err:
            log.debug("Failed to parse response body: %s", err)
            raise MalformedResponseError(str(err)) from err

        if tree.tag != dav(root):
            raise MalformedResponseError(f"expected root {root}, got {tree.tag}")
        return tree

    @staticmethod
    def parse_multistatus(content: bytes) -> Multistatus:
        """Parse the body of a PROPFIND or PROPPATCH response.

        More information you can find by link https://www.rfc-editor.org/rfc/rfc4918.html#section-13.

        :param content: the XML body of a 207 Multi-Status response.
        :return: the multistatus with its responses in document order.
        """
        tree = WebDavXmlUtils.to_tree(content, "multistatus")
        return Multistatus.from_element(tree)

    @staticmethod
    def parse_prop(content: bytes) -> Prop:
        """Parse the body of a LOCK response.

        More information you can find by link https://www.rfc-editor.org/rfc/rfc4918.html#section-9.10.

        :param content: the XML body of a LOCK response.
        :return: the properties, usually only lockdiscovery.
        """
        tree = WebDavXmlUtils.to_tree(content, "prop")
        return Prop.from_element(tree)
