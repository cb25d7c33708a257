"""
PNG Renderer module for pipeline diagrams.

Renders a FlowGraph snapshot as a PNG image, so a host can offer the
diagram as a download without going through its own canvas.
"""

import math
import os
from typing import Dict, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from .graph import FlowGraph, GraphEdge, GraphNode
from .models import EdgeStyle

Box = Tuple[int, int, int, int]


class PNGRenderer:
    """Renders pipeline graphs as PNG images at their canvas positions."""

    def __init__(
        self,
        box_padding: int = 12,
        box_min_width: int = 120,
        box_height: int = 44,
        font_size: int = 11,
        font_path: Optional[str] = None,
        scale: int = 1,
        margin: int = 40,
        dash_length: int = 6,
    ):
        self.box_padding = box_padding
        self.box_min_width = box_min_width
        self.box_height = box_height
        self.font_size = font_size
        self.font_path = font_path
        self.scale = scale
        self.margin = margin
        self.dash_length = dash_length

        # Colors
        self.bg_color = (255, 255, 255)
        self.box_fill = (255, 255, 255)
        self.exit_fill = (240, 240, 240)
        self.box_outline = (0, 0, 0)
        self.text_color = (0, 0, 0)
        self.type_color = (90, 90, 90)
        self.edge_colors = {
            EdgeStyle.ERROR.value: (200, 40, 40),
            EdgeStyle.OK.value: (40, 150, 60),
            EdgeStyle.ASYNC.value: (60, 60, 60),
            EdgeStyle.DEFAULT.value: (0, 0, 0),
        }

        self.node_boxes: Dict[str, Box] = {}  # node id -> (x, y, width, height)
        self.font = None

    def _get_font(self) -> ImageFont.ImageFont:
        """Get a font for rendering text."""
        if self.font is not None:
            return self.font

        font_size = self.font_size * self.scale

        if self.font_path:
            if os.path.exists(self.font_path):
                try:
                    self.font = ImageFont.truetype(self.font_path, font_size)
                    return self.font
                except OSError:
                    pass  # Fall through to system fonts

        font_options = [
            "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
            "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
            "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
            "/usr/share/fonts/truetype/ubuntu/Ubuntu-R.ttf",
        ]

        for path in font_options:
            if os.path.exists(path):
                try:
                    self.font = ImageFont.truetype(path, font_size)
                    return self.font
                except OSError:
                    continue

        self.font = ImageFont.load_default()
        return self.font

    def _text_size(self, text: str, draw: ImageDraw.ImageDraw) -> Tuple[int, int]:
        bbox = draw.textbbox((0, 0), text, font=self._get_font())
        return bbox[2] - bbox[0], bbox[3] - bbox[1]

    def _box_width(self, node: GraphNode, draw: ImageDraw.ImageDraw) -> int:
        widest = max(
            self._text_size(node.label, draw)[0],
            self._text_size(node.type_label, draw)[0],
        )
        return max(self.box_min_width * self.scale, widest + self.box_padding * 2 * self.scale)

    def render(self, graph: FlowGraph, output_path: str = "diagram.png") -> str:
        """
        Render the graph as a PNG image.

        Nodes are drawn at their canvas coordinates, shifted so that the
        top-left node sits at the margin.

        Args:
            graph: FlowGraph to draw
            output_path: Path to save the PNG file

        Returns:
            Path to the saved PNG file
        """
        if not graph.nodes:
            img = Image.new("RGB", (200, 100), self.bg_color)
            img.save(output_path)
            return output_path

        temp_draw = ImageDraw.Draw(Image.new("RGB", (100, 100), self.bg_color))

        scale = self.scale
        min_x = min(node.x for node in graph.nodes)
        min_y = min(node.y for node in graph.nodes)
        offset_x = self.margin * scale - min_x * scale
        offset_y = self.margin * scale - min_y * scale

        self.node_boxes = {}
        for node in graph.nodes:
            width = self._box_width(node, temp_draw)
            self.node_boxes[node.id] = (
                node.x * scale + offset_x,
                node.y * scale + offset_y,
                width,
                self.box_height * scale,
            )

        canvas_width = max(x + w for x, _, w, _ in self.node_boxes.values()) + self.margin * scale
        canvas_height = max(y + h for _, y, _, h in self.node_boxes.values()) + self.margin * scale

        img = Image.new("RGB", (canvas_width, canvas_height), self.bg_color)
        draw = ImageDraw.Draw(img)

        for edge in graph.edges:
            self._draw_edge(draw, edge)

        for node in graph.nodes:
            self._draw_box(draw, node)

        img.save(output_path, "PNG")
        return output_path

    def _draw_box(self, draw: ImageDraw.ImageDraw, node: GraphNode):
        """Draw a node box with its name and type."""
        x, y, w, h = self.node_boxes[node.id]
        line_width = max(1, self.scale)
        fill = self.exit_fill if node.is_exit else self.box_fill

        draw.rectangle([x, y, x + w, y + h], fill=fill, outline=self.box_outline, width=line_width)
        if node.is_exit:
            inset = 3 * self.scale
            draw.rectangle(
                [x + inset, y + inset, x + w - inset, y + h - inset],
                outline=self.box_outline,
                width=line_width,
            )

        font = self._get_font()
        label_w, label_h = self._text_size(node.label, draw)
        type_w, type_h = self._text_size(node.type_label, draw)
        spacing = 4 * self.scale
        top = y + (h - label_h - type_h - spacing) // 2

        draw.text((x + (w - label_w) // 2, top), node.label, fill=self.text_color, font=font)
        draw.text(
            (x + (w - type_w) // 2, top + label_h + spacing),
            node.type_label,
            fill=self.type_color,
            font=font,
        )

    def _anchor(self, box: Box, toward: Tuple[float, float]) -> Tuple[float, float]:
        """Point where the line from the box center toward ``toward`` leaves the box."""
        x, y, w, h = box
        cx, cy = x + w / 2, y + h / 2
        dx, dy = toward[0] - cx, toward[1] - cy
        if dx == 0 and dy == 0:
            return cx, cy
        factor = min(
            (w / 2) / abs(dx) if dx else math.inf,
            (h / 2) / abs(dy) if dy else math.inf,
        )
        return cx + dx * factor, cy + dy * factor

    def _draw_edge(self, draw: ImageDraw.ImageDraw, edge: GraphEdge):
        """Draw a straight connector with an arrowhead and its forward name."""
        source = self.node_boxes.get(edge.source_id)
        target = self.node_boxes.get(edge.target_id)
        if source is None or target is None:
            return

        source_center = (source[0] + source[2] / 2, source[1] + source[3] / 2)
        target_center = (target[0] + target[2] / 2, target[1] + target[3] / 2)
        start = self._anchor(source, target_center)
        end = self._anchor(target, source_center)

        color = self.edge_colors.get(edge.style_class, self.edge_colors[EdgeStyle.DEFAULT.value])
        line_width = max(1, self.scale)

        if edge.style_class == EdgeStyle.ASYNC.value:
            self._draw_dashed_line(draw, start, end, color, line_width)
        else:
            draw.line([start, end], fill=color, width=line_width)
        self._draw_arrowhead(draw, start, end, color)

        label_w, label_h = self._text_size(edge.label, draw)
        mid_x = (start[0] + end[0]) / 2
        mid_y = (start[1] + end[1]) / 2
        draw.text(
            (mid_x - label_w / 2, mid_y - label_h - 2 * self.scale),
            edge.label,
            fill=color,
            font=self._get_font(),
        )

    def _draw_dashed_line(self, draw, start, end, color, line_width):
        length = math.hypot(end[0] - start[0], end[1] - start[1])
        if length == 0:
            return
        dash = self.dash_length * self.scale
        ux, uy = (end[0] - start[0]) / length, (end[1] - start[1]) / length
        travelled = 0.0
        while travelled < length:
            stop = min(travelled + dash, length)
            draw.line(
                [
                    (start[0] + ux * travelled, start[1] + uy * travelled),
                    (start[0] + ux * stop, start[1] + uy * stop),
                ],
                fill=color,
                width=line_width,
            )
            travelled += dash * 2

    def _draw_arrowhead(
        self,
        draw: ImageDraw.ImageDraw,
        from_point: Tuple[float, float],
        to_point: Tuple[float, float],
        color: Tuple[int, int, int],
    ):
        """Draw an arrowhead at the end of a line."""
        x1, y1 = from_point
        x2, y2 = to_point

        arrow_size = 8 * self.scale

        angle = math.atan2(y2 - y1, x2 - x1)
        angle1 = angle + math.pi * 0.8
        angle2 = angle - math.pi * 0.8

        ax1 = x2 + arrow_size * math.cos(angle1)
        ay1 = y2 + arrow_size * math.sin(angle1)
        ax2 = x2 + arrow_size * math.cos(angle2)
        ay2 = y2 + arrow_size * math.sin(angle2)

        draw.polygon([(x2, y2), (ax1, ay1), (ax2, ay2)], fill=color)


def render_to_png(graph: FlowGraph, output_path: str = "diagram.png", **kwargs) -> str:
    """
    Convenience function to render a pipeline graph to PNG.

    Args:
        graph: FlowGraph to draw
        output_path: Path to save the PNG file
        **kwargs: Additional arguments for PNGRenderer

    Returns:
        Path to the saved PNG file
    """
    renderer = PNGRenderer(**kwargs)
    return renderer.render(graph, output_path)
