"""End-to-end tests of the processing nodes over the in-process transport."""

import dataclasses

import numpy as np
import pytest

from conftest import FixedMatcher, make_camera_info, make_disparity, make_image
from src_stereo_proc.core import image_encodings as enc
from src_stereo_proc.core.messages import INVALID_DISPARITY
from src_stereo_proc.nodes import PointCloud2Node, StereoProcNode
from src_stereo_proc.pointcloud import decode_valid
from src_stereo_proc.processing import StereoProcessor

GRID = ((5.0, INVALID_DISPARITY), (2.0, 5.0))

RAW_TOPICS = ("left/image_raw", "left/camera_info", "right/image_raw", "right/camera_info")
CLOUD_TOPICS = ("left/image_rect_color", "left/camera_info", "right/camera_info", "disparity")


def advertise_all(transport, topics):
    return {topic: transport.advertise(topic) for topic in topics}


def collect(transport, topic):
    received = []
    subscription = transport.subscribe(topic, received.append)
    return received, subscription


def publish_raw_pair(publishers, stamp=1):
    publishers["left/image_raw"].publish(
        make_image(np.full((2, 2), 200, dtype=np.uint8), enc.MONO8, stamp=stamp, frame_id="left_optical"))
    publishers["left/camera_info"].publish(make_camera_info(stamp, "left"))
    publishers["right/image_raw"].publish(
        make_image(np.full((2, 2), 100, dtype=np.uint8), enc.MONO8, stamp=stamp, frame_id="right_optical"))
    publishers["right/camera_info"].publish(make_camera_info(stamp, "right"))


def rgb_image(stamp=1):
    pixels = np.zeros((2, 2, 3), dtype=np.uint8)
    pixels[...] = (10, 20, 30)
    return make_image(pixels, enc.RGB8, stamp=stamp)


@pytest.fixture
def stereo_node(transport):
    processor = StereoProcessor(matcher=FixedMatcher(GRID))
    return StereoProcNode(transport, processor=processor)


class TestPointCloud2Node:

    def test_inputs_follow_output_subscribers(self, transport):
        node = PointCloud2Node(transport)
        assert not node.is_active
        assert transport.num_subscribers("disparity") == 0

        _, subscription = collect(transport, "points2")
        assert node.is_active
        assert all(transport.num_subscribers(topic) == 1 for topic in CLOUD_TOPICS)

        subscription.unsubscribe()
        assert not node.is_active
        assert all(transport.num_subscribers(topic) == 0 for topic in CLOUD_TOPICS)

    def test_publishes_cloud_for_synchronized_tuple(self, transport):
        node = PointCloud2Node(transport)
        upstream = advertise_all(transport, CLOUD_TOPICS)
        clouds, _ = collect(transport, "points2")

        disparity = make_disparity(GRID, stamp=7)
        upstream["disparity"].publish(disparity)
        upstream["left/image_rect_color"].publish(rgb_image(stamp=7))
        upstream["left/camera_info"].publish(make_camera_info(7, "left"))
        assert clouds == []
        upstream["right/camera_info"].publish(make_camera_info(7, "right"))

        assert len(clouds) == 1
        cloud = clouds[0]
        assert cloud.header == disparity.header
        assert len(cloud.data) == 64
        assert decode_valid(cloud).tolist() == [[True, False], [True, True]]
        assert node.processed_count == 1

    def test_no_work_without_subscribers(self, transport):
        node = PointCloud2Node(transport)
        upstream = advertise_all(transport, CLOUD_TOPICS)

        upstream["disparity"].publish(make_disparity(GRID))
        upstream["left/image_rect_color"].publish(rgb_image())
        upstream["left/camera_info"].publish(make_camera_info(1, "left"))
        upstream["right/camera_info"].publish(make_camera_info(1, "right"))

        assert node.processed_count == 0
        assert node.publisher("points2").published_count == 0

    def test_invalid_calibration_skips_tuple(self, transport, stereo_logs):
        node = PointCloud2Node(transport)
        upstream = advertise_all(transport, CLOUD_TOPICS)
        clouds, _ = collect(transport, "points2")

        uncalibrated = dataclasses.replace(make_camera_info(1, "right"), K=(0.0,) * 9)
        upstream["disparity"].publish(make_disparity(GRID))
        upstream["left/image_rect_color"].publish(rgb_image())
        upstream["left/camera_info"].publish(make_camera_info(1, "left"))
        upstream["right/camera_info"].publish(uncalibrated)

        assert clouds == []
        assert node.skipped_count == 1
        assert any("Skipping tuple" in r.getMessage() for r in stereo_logs.records)

    def test_color_image_of_other_size_skips_tuple(self, transport, stereo_logs):
        node = PointCloud2Node(transport)
        upstream = advertise_all(transport, CLOUD_TOPICS)
        clouds, _ = collect(transport, "points2")

        larger = make_image(np.zeros((3, 3, 3), dtype=np.uint8), enc.RGB8)
        upstream["disparity"].publish(make_disparity(GRID))
        upstream["left/image_rect_color"].publish(larger)
        upstream["left/camera_info"].publish(make_camera_info(1, "left"))
        upstream["right/camera_info"].publish(make_camera_info(1, "right"))

        assert clouds == []
        assert node.skipped_count == 1
        assert node.processed_count == 0
        assert node.publisher("points2").published_count == 0
        assert any("Skipping tuple" in r.getMessage() for r in stereo_logs.records)

    def test_deactivation_drops_pending_tuples(self, transport):
        node = PointCloud2Node(transport)
        upstream = advertise_all(transport, CLOUD_TOPICS)
        clouds, subscription = collect(transport, "points2")

        upstream["disparity"].publish(make_disparity(GRID))
        subscription.unsubscribe()
        clouds, _ = collect(transport, "points2")

        upstream["left/image_rect_color"].publish(rgb_image())
        upstream["left/camera_info"].publish(make_camera_info(1, "left"))
        upstream["right/camera_info"].publish(make_camera_info(1, "right"))

        assert clouds == []
        assert node.synchronizer.pending_count == 1

    def test_check_inputs_reports_unadvertised_topics(self, transport):
        node = PointCloud2Node(transport)
        transport.advertise("disparity")
        assert node.check_inputs() == list(CLOUD_TOPICS[:3])


class TestStereoProcNode:

    def test_any_output_subscriber_activates_inputs(self, transport, stereo_node):
        assert not stereo_node.is_active

        _, mono = collect(transport, "right/image_mono")
        _, points = collect(transport, "points")
        assert stereo_node.is_active
        assert all(transport.num_subscribers(topic) == 1 for topic in RAW_TOPICS)

        mono.unsubscribe()
        assert stereo_node.is_active
        points.unsubscribe()
        assert not stereo_node.is_active
        assert all(transport.num_subscribers(topic) == 0 for topic in RAW_TOPICS)

    def test_publishes_only_subscribed_outputs(self, transport, stereo_node):
        upstream = advertise_all(transport, RAW_TOPICS)
        mono, _ = collect(transport, "left/image_mono")

        publish_raw_pair(upstream, stamp=3)

        assert len(mono) == 1
        assert mono[0].header.stamp == 3
        assert mono[0].header.frame_id == "left_optical"
        published = {topic: p.published_count for topic, p in stereo_node.publishers.items()}
        assert published.pop("left/image_mono") == 1
        assert not any(published.values())
        assert stereo_node.processor.matcher.calls == 0

    def test_disparity_and_clouds(self, transport, stereo_node):
        upstream = advertise_all(transport, RAW_TOPICS)
        disparities, _ = collect(transport, "disparity")
        clouds, _ = collect(transport, "points2")
        sparse, _ = collect(transport, "points")

        publish_raw_pair(upstream, stamp=5)

        assert len(disparities) == len(clouds) == len(sparse) == 1
        assert disparities[0].header.frame_id == "left_optical"
        assert clouds[0].header == disparities[0].header
        assert sparse[0].points.shape == (3, 3)
        assert stereo_node.processor.matcher.calls == 1
        assert stereo_node.publisher("left/image_rect").published_count == 0

    def test_frame_too_small_for_matcher_is_skipped(self, transport, stereo_logs):
        node = StereoProcNode(transport)
        upstream = advertise_all(transport, RAW_TOPICS)
        disparities, _ = collect(transport, "disparity")

        rng = np.random.default_rng(3)
        for stamp, (height, width) in enumerate([(8, 8), (64, 128)], start=1):
            texture = rng.integers(0, 256, size=(height, width + 8), dtype=np.uint8)
            for side, pixels in (("left", texture[:, :width]), ("right", texture[:, 8:])):
                upstream[f"{side}/image_raw"].publish(
                    make_image(np.ascontiguousarray(pixels), enc.MONO8, stamp=stamp, frame_id=f"{side}_optical"))
                upstream[f"{side}/camera_info"].publish(
                    make_camera_info(stamp, side, width=width, height=height))

        assert node.skipped_count == 1
        assert node.processed_count == 1
        assert [d.header.stamp for d in disparities] == [2]
        assert any("correlation window" in r.getMessage() for r in stereo_logs.records)

    def test_current_demand_tracks_subscribers(self, transport, stereo_node):
        from src_stereo_proc.processing import OutputDemand

        collect(transport, "right/image_rect_color")
        assert stereo_node.current_demand() == OutputDemand.RIGHT_RECT_COLOR

    def test_reconfigure_forwards_parameters(self, stereo_node):
        stereo_node.reconfigure({'disparity_range': 32})
        assert stereo_node.processor.matcher.updates == [{'disparity_range': 32}]

    def test_reconfigure_rejects_invalid_parameters(self, stereo_node, stereo_logs):
        with pytest.raises(ValueError):
            stereo_node.reconfigure({'disparity_range': 33})
        assert any(r.levelname == "ERROR" for r in stereo_logs.records)

    def test_without_point_clouds(self, transport):
        node = StereoProcNode(transport, processor=StereoProcessor(matcher=FixedMatcher(GRID)),
                              publish_point_clouds=False)
        assert "points2" not in node.output_topics()
        assert len(node.output_topics()) == 9


class TestSplitPipeline:

    def test_cloud_node_pulls_its_inputs_from_stereo_node(self, transport):
        stereo = StereoProcNode(transport, processor=StereoProcessor(matcher=FixedMatcher(GRID)),
                                publish_point_clouds=False)
        cloud_node = PointCloud2Node(transport)
        upstream = advertise_all(transport, RAW_TOPICS)

        clouds, subscription = collect(transport, "points2")
        assert cloud_node.is_active
        assert stereo.is_active

        publish_raw_pair(upstream, stamp=9)

        assert len(clouds) == 1
        assert clouds[0].header.stamp == 9
        assert decode_valid(clouds[0]).sum() == 3
        assert stereo.publisher("left/image_rect_color").published_count == 1
        assert stereo.publisher("disparity").published_count == 1
        assert stereo.publisher("left/image_mono").published_count == 0

        subscription.unsubscribe()
        assert not cloud_node.is_active
        assert not stereo.is_active
